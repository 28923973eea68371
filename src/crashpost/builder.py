"""Builders for the individual parts of a report.

Each function takes live objects (exceptions, the running interpreter) and
returns frozen report models. The reporter combines them in
``ErrorReporter.build_report``.
"""

from __future__ import annotations

import locale
import os
import platform
import socket
import traceback
from collections.abc import Iterator
from datetime import datetime
from http import HTTPStatus

from crashpost.models import (
    ClientDetails,
    EnvironmentDetails,
    ErrorDetails,
    ResponseDetails,
    StackFrame,
)
from crashpost.observability.constants import CLIENT_NAME, CLIENT_URL

# Upper bound on chain walks; cyclic __cause__/__context__ graphs are not expected
MAX_CHAIN_LENGTH = 100


def inner_exception(exc: BaseException) -> BaseException | None:
    """Return the exception that ``exc`` wraps, if any.

    A group holding a single exception is treated as a box around it.
    Otherwise the explicit cause wins over the implicit context, and the
    context is ignored when it was suppressed with ``raise ... from None``.
    """
    if isinstance(exc, BaseExceptionGroup) and len(exc.exceptions) == 1:
        return exc.exceptions[0]
    if exc.__cause__ is not None:
        return exc.__cause__
    if not exc.__suppress_context__:
        return exc.__context__
    return None


def iter_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` followed by its inner exceptions, outermost first."""
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited and len(visited) < MAX_CHAIN_LENGTH:
        visited.add(id(current))
        yield current
        current = inner_exception(current)


def exception_type_name(exc: BaseException) -> str:
    """Qualified type name, without the ``builtins.`` prefix."""
    exc_type = type(exc)
    if exc_type.__module__ == "builtins":
        return exc_type.__qualname__
    return f"{exc_type.__module__}.{exc_type.__qualname__}"


def build_stack_trace(exc: BaseException) -> list[StackFrame]:
    """Traceback frames of ``exc``, oldest call first."""
    frames = []
    for frame, lineno in traceback.walk_tb(exc.__traceback__):
        code = frame.f_code
        frames.append(
            StackFrame(
                line_number=lineno,
                class_name=frame.f_globals.get("__name__"),
                file_name=code.co_filename,
                method_name=code.co_name,
            )
        )
    return frames


def build_error_details(exc: BaseException) -> ErrorDetails:
    """Describe ``exc`` and its chain of inner exceptions."""
    details: ErrorDetails | None = None
    for current in reversed(list(iter_exception_chain(exc))):
        data = {}
        notes = getattr(current, "__notes__", None)
        if notes:
            data["notes"] = [str(note) for note in notes]
        details = ErrorDetails(
            class_name=exception_type_name(current),
            message=str(current),
            stack_trace=build_stack_trace(current),
            data=data,
            inner_error=details,
        )
    assert details is not None
    return details


def build_response_details(exc: BaseException) -> ResponseDetails | None:
    """HTTP status for exceptions that carry one, such as ``HTTPException``."""
    status_code = getattr(exc, "status_code", None)
    if not isinstance(status_code, int) or isinstance(status_code, bool):
        return None

    description = getattr(exc, "detail", None)
    if description is None:
        try:
            description = HTTPStatus(status_code).phrase
        except ValueError:
            description = None
    return ResponseDetails(
        status_code=status_code,
        status_description=str(description) if description is not None else None,
    )


def _utc_offset_hours() -> float | None:
    offset = datetime.now().astimezone().utcoffset()
    if offset is None:
        return None
    return offset.total_seconds() / 3600


def build_environment_details() -> EnvironmentDetails:
    """Snapshot of the host and interpreter."""
    return EnvironmentDetails(
        processor_count=os.cpu_count(),
        os_version=f"{platform.system()} {platform.release()}".strip(),
        platform=platform.platform(),
        architecture=platform.machine() or None,
        python_implementation=platform.python_implementation(),
        python_version=platform.python_version(),
        utc_offset=_utc_offset_hours(),
        locale=locale.getlocale()[0],
    )


def build_client_details() -> ClientDetails:
    """Name and version of this library."""
    from crashpost import __version__

    return ClientDetails(name=CLIENT_NAME, version=__version__, client_url=CLIENT_URL)


def machine_name() -> str:
    return socket.gethostname()
