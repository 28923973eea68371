"""Starlette/FastAPI hooks that report unhandled exceptions.

    from fastapi import FastAPI
    from crashpost.integration import attach, detach

    app = FastAPI(version="1.4.2")
    attachment = attach(app)
    ...
    detach(app, attachment)

``attach`` installs three hooks:

* ``RequestCaptureMiddleware`` captures each request before the endpoint runs
  and reports exceptions the endpoint raises.
* A ``ReportingExceptionHandler`` around the server-error handler (``500`` or
  ``Exception``) catches failures raised outside the middleware.
* A ``ReportingExceptionHandler`` around the ``HTTPException`` handler reports
  HTTP errors, subject to the excluded status codes.

An exception seen by more than one hook is reported once.
"""

from __future__ import annotations

import functools
import inspect
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi.exception_handlers import http_exception_handler
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp

from crashpost.exceptions import IntegrationError
from crashpost.observability import LogEvents, get_logger
from crashpost.reporter import ErrorReporter

logger = get_logger(__name__)

ExceptionHandler = Callable[[Request, Exception], Any]

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

# Larger or unsized form bodies are not buffered for capture
MAX_CAPTURED_FORM_BYTES = 1024 * 1024


def _is_async_callable(obj: Any) -> bool:
    while isinstance(obj, functools.partial):
        obj = obj.func
    return inspect.iscoroutinefunction(obj) or (
        callable(obj) and inspect.iscoroutinefunction(obj.__call__)
    )


async def server_error_response(request: Request, exc: Exception) -> Response:  # noqa: ARG001
    """Starlette's default response for unhandled exceptions."""
    return PlainTextResponse("Internal Server Error", status_code=500)


class ReporterProvider:
    """Creates the reporter used by the hooks, once, on first use."""

    def __init__(
        self,
        factory: Callable[[], ErrorReporter] | None = None,
        application_version: str | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            factory: Builds a custom reporter. Defaults to ``ErrorReporter()``.
            application_version: Applied when the reporter has no version set.
        """
        self._factory = factory
        self._application_version = application_version
        self._reporter: ErrorReporter | None = None
        self._lock = threading.Lock()

    @property
    def reporter(self) -> ErrorReporter:
        with self._lock:
            if self._reporter is None:
                reporter = self._factory() if self._factory else ErrorReporter()
                if reporter.application_version is None:
                    reporter.application_version = self._application_version
                self._reporter = reporter
            return self._reporter

    def generate(self, request: Request, form: FormData | None = None) -> ErrorReporter:
        """Return the reporter with ``request`` captured for the current context."""
        return self.reporter.capture_request(request, form)


class RequestCaptureMiddleware(BaseHTTPMiddleware):
    """Captures the request before dispatch and reports endpoint failures.

    Form bodies are read here, while the request is still readable. The body
    is cached first so the endpoint can read it again. Bodies without a
    ``Content-Length`` or larger than ``max_form_bytes`` are left unread.
    """

    def __init__(
        self,
        app: ASGIApp,
        provider: ReporterProvider,
        max_form_bytes: int = MAX_CAPTURED_FORM_BYTES,
    ) -> None:
        super().__init__(app)
        self.provider = provider
        self.max_form_bytes = max_form_bytes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        form = await self._read_form(request)
        reporter = self.provider.generate(request, form)

        try:
            return await call_next(request)
        except Exception as exc:
            if reporter.can_send_exception(exc):
                reporter.capture_request(request, form).send_in_background(exc)
            raise

    async def _read_form(self, request: Request) -> FormData | None:
        """Text fields of a form body, or None for other content types."""
        content_type = request.headers.get("content-type", "")
        if not content_type.startswith(FORM_CONTENT_TYPES):
            return None

        content_length = request.headers.get("content-length", "")
        if not content_length.isdigit() or int(content_length) > self.max_form_bytes:
            logger.debug(
                LogEvents.REQUEST_FORM_SKIPPED,
                content_length=content_length or None,
                max_form_bytes=self.max_form_bytes,
            )
            return None

        try:
            await request.body()
            form = await request.form()
            fields = [(name, value) for name, value in form.multi_items() if isinstance(value, str)]
            await form.close()
        except Exception as exc:
            logger.warning(LogEvents.REQUEST_CAPTURE_FAILED, error=str(exc))
            return None
        return FormData(fields)


class ReportingExceptionHandler:
    """Reports the exception, then delegates to the handler it replaced.

    Attributes:
        previous: The handler installed before this one, or None.
    """

    def __init__(
        self,
        provider: ReporterProvider,
        previous: ExceptionHandler | None,
        fallback: ExceptionHandler,
    ) -> None:
        self.provider = provider
        self.previous = previous
        self.fallback = fallback

    async def __call__(self, request: Request, exc: Exception) -> Response:
        reporter = self.provider.reporter
        if reporter.can_send_exception(exc):
            pending = reporter.pending_request()
            if pending is None or pending.scope is not request.scope:
                reporter.capture_request(request)
            reporter.send_in_background(exc)

        handler = self.previous or self.fallback
        if _is_async_callable(handler):
            response: Response = await handler(request, exc)
        else:
            response = await run_in_threadpool(handler, request, exc)
        return response


@dataclass
class Attachment:
    """Token returned by ``attach``; pass it to ``detach`` to remove the hooks."""

    app: Starlette
    provider: ReporterProvider
    middleware: Middleware
    handlers: dict[Any, ReportingExceptionHandler] = field(default_factory=dict)
    previous_handlers: dict[Any, ExceptionHandler | None] = field(default_factory=dict)
    active: bool = True


def _server_error_key(app: Starlette) -> Any:
    return 500 if 500 in app.exception_handlers else Exception


def attach(
    app: Starlette,
    reporter_factory: Callable[[], ErrorReporter] | None = None,
    application_version: str | None = None,
) -> Attachment:
    """Install the reporting hooks on ``app``.

    Args:
        app: A Starlette or FastAPI application.
        reporter_factory: Builds the reporter. Defaults to ``ErrorReporter()``.
        application_version: Version attached to reports. Defaults to
            ``app.version`` when the app has one.

    Returns:
        The token ``detach`` needs to remove exactly these hooks.
    """
    if application_version is None:
        application_version = getattr(app, "version", None)
    provider = ReporterProvider(reporter_factory, application_version)

    middleware = Middleware(RequestCaptureMiddleware, provider=provider)
    attachment = Attachment(app=app, provider=provider, middleware=middleware)

    fallbacks: dict[Any, ExceptionHandler] = {
        _server_error_key(app): server_error_response,
        StarletteHTTPException: http_exception_handler,
    }
    for key, fallback in fallbacks.items():
        previous = app.exception_handlers.get(key)
        handler = ReportingExceptionHandler(provider, previous, fallback)
        attachment.previous_handlers[key] = previous
        attachment.handlers[key] = handler
        app.exception_handlers[key] = handler

    # Outermost user middleware, so it sees every endpoint failure
    app.user_middleware.insert(0, middleware)
    # Starlette builds the stack lazily; force a rebuild with the new hooks
    app.middleware_stack = None

    logger.info(
        LogEvents.INTEGRATION_ATTACHED,
        app=type(app).__name__,
        application_version=application_version,
    )
    return attachment


def detach(app: Starlette, attachment: Attachment) -> None:
    """Remove the hooks installed by ``attach`` and restore the old handlers.

    A handler is restored only if the hook is still installed; handlers
    registered after ``attach`` are left alone. Detaching twice is a no-op.

    Raises:
        IntegrationError: If ``attachment`` was issued for another app.
    """
    if attachment.app is not app:
        raise IntegrationError("Attachment was issued for a different application")
    if not attachment.active:
        return

    for key, handler in attachment.handlers.items():
        if app.exception_handlers.get(key) is not handler:
            continue
        previous = attachment.previous_handlers.get(key)
        if previous is None:
            del app.exception_handlers[key]
        else:
            app.exception_handlers[key] = previous

    app.user_middleware = [m for m in app.user_middleware if m is not attachment.middleware]
    app.middleware_stack = None
    attachment.active = False

    logger.info(LogEvents.INTEGRATION_DETACHED, app=type(app).__name__)
