"""
crashpost

Reports unhandled exceptions from Starlette/FastAPI applications to a remote
error collection endpoint.

Example:
    from fastapi import FastAPI
    from crashpost import ErrorReporter, attach

    app = FastAPI(version="2.3.0")
    attach(app)  # reads CRASHPOST_API_KEY / CRASHPOST_API_ENDPOINT

    # Or report by hand
    reporter = ErrorReporter(api_key="abc123")
    try:
        checkout()
    except Exception as exc:
        reporter.send(exc, tags=["checkout"], user_custom_data={"cart": 42})
"""

__version__ = "0.1.0"

from .config import Settings, get_settings
from .exceptions import ConfigurationError, CrashPostError, IntegrationError
from .integration import (
    Attachment,
    ReporterProvider,
    ReportingExceptionHandler,
    RequestCaptureMiddleware,
    attach,
    detach,
)
from .models import (
    ClientDetails,
    EnvironmentDetails,
    ErrorDetails,
    Report,
    ReportDetails,
    RequestSnapshot,
    ResponseDetails,
    StackFrame,
    UserInfo,
)
from .observability import configure_logging, get_logger
from .reporter import (
    ErrorReporter,
    flag_as_sent,
    is_flagged_as_sent,
    shutdown_background_pool,
)
from .request import RequestMessageOptions, build_request_snapshot

__all__ = [
    # Core
    "ErrorReporter",
    "flag_as_sent",
    "is_flagged_as_sent",
    "shutdown_background_pool",
    # Framework integration
    "attach",
    "detach",
    "Attachment",
    "ReporterProvider",
    "ReportingExceptionHandler",
    "RequestCaptureMiddleware",
    # Request capture
    "RequestMessageOptions",
    "build_request_snapshot",
    # Configuration
    "Settings",
    "get_settings",
    # Logging
    "configure_logging",
    "get_logger",
    # Exceptions
    "CrashPostError",
    "ConfigurationError",
    "IntegrationError",
    # Report models
    "Report",
    "ReportDetails",
    "ErrorDetails",
    "StackFrame",
    "EnvironmentDetails",
    "ClientDetails",
    "UserInfo",
    "RequestSnapshot",
    "ResponseDetails",
    # Metadata
    "__version__",
]
