"""Tests for structured logging setup."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
import structlog

from crashpost.observability import configure_logging
from crashpost.observability.logger import add_client_name


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Undo configure_logging so later tests see structlog defaults."""
    yield
    structlog.reset_defaults()
    logging.getLogger().setLevel(logging.WARNING)


class TestAddClientName:
    def test_adds_client(self) -> None:
        event = add_client_name(logging.getLogger(), "info", {"event": "report.send.succeeded"})

        assert event["client"] == "crashpost"

    def test_keeps_existing_client(self) -> None:
        event = add_client_name(logging.getLogger(), "info", {"event": "x", "client": "other"})

        assert event["client"] == "other"


@pytest.mark.usefixtures("restore_logging")
class TestConfigureLogging:
    def test_sets_root_level(self) -> None:
        configure_logging(log_level="debug")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_console_renderer_in_development(self) -> None:
        configure_logging(development_mode=True)

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_renderer_by_default(self) -> None:
        configure_logging()

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
