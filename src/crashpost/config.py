"""Configuration settings for the error reporter.

Settings are read from ``CRASHPOST_``-prefixed environment variables or a
``.env`` file. Name lists and status codes are comma-separated:

    CRASHPOST_API_KEY=abc123
    CRASHPOST_IGNORE_HEADER_NAMES=Authorization,X-Session-Token
    CRASHPOST_EXCLUDED_STATUS_CODES=404,418
"""

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class Settings(BaseSettings):
    """Reporter settings loaded from environment variables."""

    # Remote endpoint
    api_key: str = ""
    api_endpoint: str = "http://localhost:8000/entries"

    # Request snapshot redaction
    ignore_form_field_names: Annotated[list[str], NoDecode] = Field(default_factory=list)
    ignore_header_names: Annotated[list[str], NoDecode] = Field(default_factory=list)
    ignore_cookie_names: Annotated[list[str], NoDecode] = Field(default_factory=list)
    ignore_server_variable_names: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # Eligibility
    excluded_status_codes: Annotated[list[int], NoDecode] = Field(default_factory=list)

    # Re-raise transmission failures instead of logging them
    throw_on_error: bool = False

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CRASHPOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator(
        "ignore_form_field_names",
        "ignore_header_names",
        "ignore_cookie_names",
        "ignore_server_variable_names",
        "excluded_status_codes",
        mode="before",
    )
    @classmethod
    def split_comma_separated(cls, v: Any) -> Any:
        """Accept comma-separated strings for list settings."""
        return _split_csv(v)

    @field_validator("excluded_status_codes")
    @classmethod
    def validate_status_codes(cls, v: list[int]) -> list[int]:
        """Reject values that are not HTTP status codes."""
        for code in v:
            if not 100 <= code <= 599:
                raise ValueError(f"excluded status code must be between 100 and 599, got {code}")
        return v

    @field_validator("api_endpoint")
    @classmethod
    def validate_api_endpoint(cls, v: str) -> str:
        """Validate endpoint URL format (must be HTTP/HTTPS)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got '{v}'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        normalized = v.upper()
        if normalized not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got '{v}'")
        return normalized


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
