"""Report models sent to the collection endpoint.

All models are frozen and serialize with camelCase keys, which is the wire
format the endpoint expects:

    {
      "occurredOn": "2026-10-19T08:15:00Z",
      "details": {
        "machineName": "web-01",
        "error": {"className": "ValueError", "message": "...", ...},
        "tags": ["checkout"],
        "userCustomData": {"order_id": 42},
        "request": {"httpMethod": "POST", "url": "...", ...}
      }
    }
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReportModel(BaseModel):
    """Base model with camelCase wire aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class StackFrame(ReportModel):
    """A single traceback entry."""

    line_number: int | None = None
    class_name: str | None = Field(default=None, description="Module the frame belongs to")
    file_name: str | None = None
    method_name: str | None = None


class ErrorDetails(ReportModel):
    """Exception type, message and traceback, with the chain of causes."""

    class_name: str
    message: str
    stack_trace: list[StackFrame] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
    inner_error: ErrorDetails | None = None


class EnvironmentDetails(ReportModel):
    """Host and runtime metadata."""

    processor_count: int | None = None
    os_version: str | None = None
    platform: str | None = None
    architecture: str | None = None
    python_implementation: str | None = None
    python_version: str | None = None
    utc_offset: float | None = Field(default=None, description="Hours from UTC")
    locale: str | None = None


class ClientDetails(ReportModel):
    """Identifies the reporting library."""

    name: str
    version: str
    client_url: str | None = None


class UserInfo(ReportModel):
    """Identity of the user affected by the error."""

    identifier: str
    is_anonymous: bool = False
    email: str | None = None
    full_name: str | None = None
    first_name: str | None = None
    uuid: str | None = None


class RequestSnapshot(ReportModel):
    """Redacted, point-in-time copy of the inbound HTTP request."""

    host_name: str | None = None
    url: str | None = None
    http_method: str | None = None
    ip_address: str | None = None
    query_string: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    form: dict[str, str] = Field(default_factory=dict)
    cookies: dict[str, str] = Field(default_factory=dict)
    data: dict[str, str] = Field(default_factory=dict, description="Server variables")


class ResponseDetails(ReportModel):
    """HTTP status attached to errors that carry one."""

    status_code: int
    status_description: str | None = None


class ReportDetails(ReportModel):
    """Everything known about one error occurrence."""

    machine_name: str | None = None
    version: str | None = None
    error: ErrorDetails
    environment: EnvironmentDetails | None = None
    client: ClientDetails | None = None
    tags: list[str] = Field(default_factory=list)
    user_custom_data: dict[str, Any] = Field(default_factory=dict)
    user: UserInfo | None = None
    request: RequestSnapshot | None = None
    response: ResponseDetails | None = None


class Report(ReportModel):
    """The error document posted to the collection endpoint."""

    occurred_on: datetime
    details: ReportDetails

    def to_json(self) -> str:
        """Serialize using the wire (camelCase) field names."""
        return self.model_dump_json(by_alias=True)
