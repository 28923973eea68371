"""Observability layer for crashpost.

Structured logging for the reporter's own diagnostics: transmission failures,
skipped reports and framework attach/detach events.

Usage:
    from crashpost.observability import configure_logging, get_logger

    configure_logging(log_level="DEBUG", log_format="console")
    logger = get_logger(__name__)
    logger.debug("report.send.skipped", reason="missing_api_key")
"""

from crashpost.observability.constants import (
    API_KEY_HEADER,
    CLIENT_NAME,
    CLIENT_URL,
    LogEvents,
)
from crashpost.observability.logger import configure_logging, get_logger

__all__ = [
    # Constants
    "API_KEY_HEADER",
    "CLIENT_NAME",
    "CLIENT_URL",
    "LogEvents",
    # Logger
    "configure_logging",
    "get_logger",
]
