"""Error reporter: capture, build, filter and transmit error reports.

Typical use inside a request handler:

    reporter = ErrorReporter()
    try:
        ...
    except Exception as exc:
        reporter.capture_request(request).send_in_background(exc, tags=["checkout"])
        raise

Framework hooks that do this automatically live in ``crashpost.integration``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from starlette.requests import Request

from crashpost.builder import (
    build_client_details,
    build_environment_details,
    build_error_details,
    build_response_details,
    inner_exception,
    machine_name,
)
from crashpost.config import Settings, get_settings
from crashpost.exceptions import ConfigurationError
from crashpost.models import Report, ReportDetails, RequestSnapshot, UserInfo
from crashpost.observability import LogEvents, get_logger
from crashpost.observability.constants import SENT_FLAG_ATTRIBUTE
from crashpost.request import RequestMessageOptions, build_request_snapshot
from crashpost.transport import ReportTransport

logger = get_logger(__name__)

SendingHandler = Callable[[Report], bool]

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    """Return the process-wide background pool, creating it on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(thread_name_prefix="crashpost")
        return _executor


def shutdown_background_pool(wait: bool = True) -> None:
    """Stop the shared background pool.

    Pending sends finish first when ``wait`` is true. The pool is recreated
    by the next background send.
    """
    global _executor
    with _executor_lock:
        executor, _executor = _executor, None
    if executor is not None:
        executor.shutdown(wait=wait)


def _log_background_failure(future: Future[None]) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error(
            LogEvents.REPORT_BACKGROUND_FAILED,
            error_type=type(exc).__name__,
            error=str(exc),
        )


def flag_as_sent(exception: BaseException) -> None:
    """Mark this exception instance as reported."""
    setattr(exception, SENT_FLAG_ATTRIBUTE, True)


def is_flagged_as_sent(exception: BaseException) -> bool:
    """Whether this exact exception instance was already reported."""
    return getattr(exception, SENT_FLAG_ATTRIBUTE, False) is True


class ErrorReporter:
    """Builds error reports and posts them to the collection endpoint.

    Configuration (API key, endpoint, ignore-lists, excluded status codes,
    strict mode) is read once from settings at construction. Ignore-lists and
    wrapper exceptions can be extended afterwards, but only during startup:
    nothing here is locked against concurrent mutation.

    Attributes:
        user: Plain username attached to reports when ``user_info`` is unset.
        user_info: Full identity attached to reports.
        proxy_credentials: Username and password for the system proxy.
        application_version: Version string attached to every report.
    """

    def __init__(self, api_key: str | None = None, settings: Settings | None = None) -> None:
        """Initialize the reporter.

        Args:
            api_key: API key for the endpoint. Defaults to the configured key.
            settings: Settings to read. Defaults to the cached environment settings.
        """
        self._settings = settings or get_settings()
        self._api_key = api_key if api_key is not None else self._settings.api_key
        self._endpoint = self._settings.api_endpoint
        self._excluded_status_codes = frozenset(self._settings.excluded_status_codes)
        self._throw_on_error = self._settings.throw_on_error

        self._request_message_options = RequestMessageOptions()
        self._wrapper_exceptions: list[type[BaseException]] = [BaseExceptionGroup, ExceptionGroup]
        self._sending_handlers: list[SendingHandler] = []

        # One pending request per task/thread; values never leak across contexts
        self._current_request: ContextVar[tuple[Request, Mapping[str, Any] | None] | None] = (
            ContextVar(f"crashpost_current_request_{id(self)}", default=None)
        )

        self.user: str | None = None
        self.user_info: UserInfo | None = None
        self.proxy_credentials: tuple[str, str] | None = None
        self.application_version: str | None = None

        self.ignore_form_field_names(*self._settings.ignore_form_field_names)
        self.ignore_header_names(*self._settings.ignore_header_names)
        self.ignore_cookie_names(*self._settings.ignore_cookie_names)
        self.ignore_server_variable_names(*self._settings.ignore_server_variable_names)

    @property
    def throw_on_error(self) -> bool:
        return self._throw_on_error

    @property
    def excluded_status_codes(self) -> frozenset[int]:
        return self._excluded_status_codes

    @property
    def wrapper_exceptions(self) -> tuple[type[BaseException], ...]:
        return tuple(self._wrapper_exceptions)

    @property
    def request_message_options(self) -> RequestMessageOptions:
        return self._request_message_options

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_wrapper_exceptions(self, *wrapper_exceptions: type[BaseException]) -> None:
        """Strip these exception types and report their inner exception instead.

        Args:
            wrapper_exceptions: Exception types that only box the real failure.

        Raises:
            ConfigurationError: If an argument is not an exception type.
        """
        for wrapper in wrapper_exceptions:
            if not (isinstance(wrapper, type) and issubclass(wrapper, BaseException)):
                raise ConfigurationError(
                    f"Wrapper exception must be an exception type, got {wrapper!r}"
                )
            if wrapper not in self._wrapper_exceptions:
                self._wrapper_exceptions.append(wrapper)

    def remove_wrapper_exceptions(self, *wrapper_exceptions: type[BaseException]) -> None:
        """Report these exception types as-is rather than stripping them."""
        for wrapper in wrapper_exceptions:
            if wrapper in self._wrapper_exceptions:
                self._wrapper_exceptions.remove(wrapper)

    def ignore_form_field_names(self, *names: str) -> None:
        """Drop these form fields (case-insensitive) from request snapshots."""
        self._request_message_options.add_form_field_names(*names)

    def ignore_header_names(self, *names: str) -> None:
        """Drop these headers (case-insensitive) from request snapshots."""
        self._request_message_options.add_header_names(*names)

    def ignore_cookie_names(self, *names: str) -> None:
        """Drop these cookies (case-insensitive) from request snapshots."""
        self._request_message_options.add_cookie_names(*names)

    def ignore_server_variable_names(self, *names: str) -> None:
        """Drop these server variables (case-insensitive) from request snapshots."""
        self._request_message_options.add_server_variable_names(*names)

    def add_sending_handler(self, handler: SendingHandler) -> None:
        """Register a callback that may veto a report by returning False."""
        self._sending_handlers.append(handler)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def capture_request(
        self, request: Request, form: Mapping[str, Any] | None = None
    ) -> ErrorReporter:
        """Remember ``request`` for the next report built on this context.

        Args:
            request: The in-flight request.
            form: The request's form, if it was already parsed.

        Returns:
            This reporter, for chaining into ``send``.
        """
        self._current_request.set((request, form))
        return self

    def pending_request(self) -> Request | None:
        """The request captured on this context and not yet consumed."""
        pending = self._current_request.get()
        return pending[0] if pending is not None else None

    def _build_request_snapshot(self) -> RequestSnapshot | None:
        """Snapshot and clear the pending request for this context."""
        pending = self._current_request.get()
        self._current_request.set(None)
        if pending is None:
            return None

        request, form = pending
        try:
            return build_request_snapshot(request, self._request_message_options, form)
        except Exception as exc:
            logger.warning(LogEvents.REQUEST_CAPTURE_FAILED, error=str(exc))
            return None

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def validate_api_key(self) -> bool:
        if not self._api_key:
            logger.debug(LogEvents.REPORT_SEND_SKIPPED, reason="missing_api_key")
            return False
        return True

    def can_send(self, report: Report | None) -> bool:
        """False when the report's response status code is excluded."""
        if report is not None and report.details.response is not None:
            return report.details.response.status_code not in self._excluded_status_codes
        return True

    def can_send_exception(self, exception: BaseException | None) -> bool:
        """False when this exception instance was already reported."""
        return exception is None or not is_flagged_as_sent(exception)

    def on_sending_report(self, report: Report) -> bool:
        """Last chance to veto a report. Override or register sending handlers."""
        for handler in self._sending_handlers:
            if handler(report) is False:
                return False
        return True

    # ------------------------------------------------------------------
    # Report construction
    # ------------------------------------------------------------------

    def strip_wrapper_exceptions(self, exception: BaseException) -> BaseException:
        """Replace wrapper exceptions with the exception they wrap.

        Stops at the first exception that is not a wrapper type or wraps
        nothing. A group holding several exceptions is kept whole. Cyclic
        chains stop at the first repeated exception.
        """
        visited: set[int] = set()
        while type(exception) in self._wrapper_exceptions and id(exception) not in visited:
            visited.add(id(exception))
            if isinstance(exception, BaseExceptionGroup) and len(exception.exceptions) != 1:
                break
            inner = inner_exception(exception)
            if inner is None:
                break
            exception = inner
        return exception

    def _resolve_user(self) -> UserInfo | None:
        if self.user_info is not None:
            return self.user_info
        if self.user:
            return UserInfo(identifier=self.user)
        return None

    def build_report(
        self,
        exception: BaseException,
        tags: Iterable[str] | None = None,
        user_custom_data: Mapping[Any, Any] | None = None,
        request: RequestSnapshot | None = None,
    ) -> Report:
        """Build the report for ``exception``.

        Args:
            exception: The exception to describe; wrappers are stripped first.
            tags: Strings associated with the report, kept in order.
            user_custom_data: Extra key-value data. Keys are converted to
                strings; values are not copied.
            request: Snapshot of the request the error happened in.

        Returns:
            The report, ready for ``send_report``.
        """
        exception = self.strip_wrapper_exceptions(exception)

        details = ReportDetails(
            machine_name=machine_name(),
            version=self.application_version,
            error=build_error_details(exception),
            environment=build_environment_details(),
            client=build_client_details(),
            tags=list(tags or []),
            user_custom_data={
                str(key): value for key, value in (user_custom_data or {}).items()
            },
            user=self._resolve_user(),
            request=request,
            response=build_response_details(exception),
        )
        return Report(occurred_on=datetime.now(timezone.utc), details=details)

    # ------------------------------------------------------------------
    # Transmission
    # ------------------------------------------------------------------

    def send(
        self,
        exception: BaseException,
        tags: Iterable[str] | None = None,
        user_custom_data: Mapping[Any, Any] | None = None,
    ) -> None:
        """Report ``exception`` synchronously.

        Blocks for the duration of the HTTP call. Failures are logged and
        swallowed unless ``throw_on_error`` is set.
        """
        if not self.can_send_exception(exception):
            return

        request = self._build_request_snapshot()
        self._build_and_send(exception, list(tags or []), user_custom_data, request)
        flag_as_sent(exception)

    def send_in_background(
        self,
        exception: BaseException,
        tags: Iterable[str] | None = None,
        user_custom_data: Mapping[Any, Any] | None = None,
    ) -> None:
        """Report ``exception`` on the shared background pool.

        The request snapshot is taken here, on the calling context, because
        the request must not be touched from the worker. Returns immediately.
        """
        if not self.can_send_exception(exception):
            return

        request = self._build_request_snapshot()
        self._submit(self._build_and_send, exception, list(tags or []), user_custom_data, request)
        logger.debug(LogEvents.REPORT_BACKGROUND_SCHEDULED, error_type=type(exception).__name__)
        flag_as_sent(exception)

    def send_report_in_background(self, report: Report) -> None:
        """Post a pre-built report on the shared background pool."""
        self._submit(self.send_report, report)

    def _submit(self, fn: Callable[..., None], *args: Any) -> None:
        try:
            future = _get_executor().submit(fn, *args)
        except RuntimeError as exc:
            # Pool shut down between lookup and submit
            logger.error(
                LogEvents.REPORT_BACKGROUND_FAILED,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return
        future.add_done_callback(_log_background_failure)

    def _build_and_send(
        self,
        exception: BaseException,
        tags: list[str],
        user_custom_data: Mapping[Any, Any] | None,
        request: RequestSnapshot | None,
    ) -> None:
        try:
            report = self.build_report(exception, tags, user_custom_data, request)
        except Exception as exc:
            self._log_send_failure(exc)
            if self._throw_on_error:
                raise
            return
        self.send_report(report)

    def send_report(self, report: Report) -> None:
        """Post a pre-built report.

        Silently does nothing when no API key is configured or the report is
        not eligible.

        Raises:
            Exception: The original serialization or transport error, only
                when ``throw_on_error`` is set.
        """
        if not self.validate_api_key():
            return

        if not self.on_sending_report(report):
            logger.debug(LogEvents.REPORT_SEND_VETOED)
            return
        if not self.can_send(report):
            response = report.details.response
            logger.debug(
                LogEvents.REPORT_SEND_EXCLUDED,
                status_code=response.status_code if response else None,
            )
            return

        transport = ReportTransport(self._endpoint, self._api_key, self.proxy_credentials)
        try:
            transport.post(report.to_json())
        except Exception as exc:
            self._log_send_failure(exc)
            if self._throw_on_error:
                raise

    def _log_send_failure(self, exc: Exception) -> None:
        logger.warning(
            LogEvents.REPORT_SEND_FAILED,
            endpoint=self._endpoint,
            error_type=type(exc).__name__,
            error=str(exc),
        )
