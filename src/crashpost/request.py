"""Request snapshot capture.

A Starlette ``Request`` is only safe to read on the task that owns it, and it
may be gone by the time a background worker builds the report. The snapshot
copies everything the report needs into plain dicts, dropping ignore-listed
names as it goes.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from starlette.requests import Request

from crashpost.models import RequestSnapshot

# The raw Cookie header would bypass the cookie ignore-list
_EXCLUDED_HEADERS = frozenset({"cookie"})


def _normalize(names: Iterable[str]) -> set[str]:
    return {name.strip().lower() for name in names if name and name.strip()}


class RequestMessageOptions:
    """Case-insensitive ignore-lists applied when snapshotting a request.

    Lists only grow. They are meant to be filled during startup, before
    requests are being reported.
    """

    def __init__(self) -> None:
        self._ignored_form_field_names: set[str] = set()
        self._ignored_header_names: set[str] = set()
        self._ignored_cookie_names: set[str] = set()
        self._ignored_server_variable_names: set[str] = set()

    def add_form_field_names(self, *names: str) -> None:
        self._ignored_form_field_names |= _normalize(names)

    def add_header_names(self, *names: str) -> None:
        self._ignored_header_names |= _normalize(names)

    def add_cookie_names(self, *names: str) -> None:
        self._ignored_cookie_names |= _normalize(names)

    def add_server_variable_names(self, *names: str) -> None:
        self._ignored_server_variable_names |= _normalize(names)

    def is_form_field_ignored(self, name: str) -> bool:
        return name.lower() in self._ignored_form_field_names

    def is_header_ignored(self, name: str) -> bool:
        return name.lower() in self._ignored_header_names

    def is_cookie_ignored(self, name: str) -> bool:
        return name.lower() in self._ignored_cookie_names

    def is_server_variable_ignored(self, name: str) -> bool:
        return name.lower() in self._ignored_server_variable_names

    @property
    def ignored_form_field_names(self) -> frozenset[str]:
        return frozenset(self._ignored_form_field_names)

    @property
    def ignored_header_names(self) -> frozenset[str]:
        return frozenset(self._ignored_header_names)

    @property
    def ignored_cookie_names(self) -> frozenset[str]:
        return frozenset(self._ignored_cookie_names)

    @property
    def ignored_server_variable_names(self) -> frozenset[str]:
        return frozenset(self._ignored_server_variable_names)


def _collect(
    pairs: Iterable[tuple[str, Any]], ignored: Callable[[str], bool]
) -> dict[str, str]:
    """Merge repeated names into one comma-joined value, skipping ignored names."""
    collected: dict[str, str] = {}
    for name, value in pairs:
        if ignored(name):
            continue
        if name in collected:
            collected[name] = f"{collected[name]}, {value}"
        else:
            collected[name] = str(value)
    return collected


def _form_items(form: Mapping[str, Any]) -> list[tuple[str, Any]]:
    """Text fields of a parsed form; uploaded files are never copied."""
    if hasattr(form, "multi_items"):
        items = form.multi_items()
    else:
        items = list(form.items())
    return [(name, value) for name, value in items if isinstance(value, str)]


def server_variables(request: Request) -> dict[str, str]:
    """CGI-style server variables derived from the ASGI scope."""
    scope = request.scope
    variables: dict[str, Any] = {
        "REQUEST_METHOD": scope.get("method"),
        "URL_SCHEME": scope.get("scheme"),
        "SERVER_PROTOCOL": f"HTTP/{scope['http_version']}" if scope.get("http_version") else None,
        "PATH_INFO": scope.get("path"),
        "SCRIPT_NAME": scope.get("root_path"),
        "QUERY_STRING": scope.get("query_string", b"").decode("latin-1"),
    }
    server = scope.get("server")
    if server:
        variables["SERVER_NAME"], variables["SERVER_PORT"] = server[0], server[1]
    client = scope.get("client")
    if client:
        variables["REMOTE_ADDR"], variables["REMOTE_PORT"] = client[0], client[1]
    return {name: str(value) for name, value in variables.items() if value is not None}


def build_request_snapshot(
    request: Request,
    options: RequestMessageOptions,
    form: Mapping[str, Any] | None = None,
) -> RequestSnapshot:
    """Copy ``request`` into a ``RequestSnapshot`` honoring the ignore-lists.

    Args:
        request: The in-flight request. Must be read on the task that owns it.
        options: Ignore-lists to apply.
        form: The request's parsed form, if the caller already read it. The
            body is never read here.

    Returns:
        A detached snapshot that is safe to hand to another thread.
    """
    headers = _collect(
        (
            (name, value)
            for name, value in request.headers.items()
            if name.lower() not in _EXCLUDED_HEADERS
        ),
        options.is_header_ignored,
    )
    cookies = _collect(request.cookies.items(), options.is_cookie_ignored)
    form_fields = _collect(_form_items(form), options.is_form_field_ignored) if form else {}
    variables = _collect(server_variables(request).items(), options.is_server_variable_ignored)
    query = _collect(request.query_params.multi_items(), lambda _name: False)

    return RequestSnapshot(
        host_name=request.url.hostname,
        url=str(request.url),
        http_method=request.method,
        ip_address=request.client.host if request.client else None,
        query_string=query,
        headers=headers,
        form=form_fields,
        cookies=cookies,
        data=variables,
    )
