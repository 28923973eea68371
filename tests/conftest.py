"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import os
from collections.abc import Generator
from unittest.mock import patch

import pytest

from crashpost import ErrorReporter, Settings, get_settings, shutdown_background_pool

ENDPOINT = "https://collector.test/entries"


@pytest.fixture(autouse=True)
def isolated_environment() -> Generator[None, None, None]:
    """Keep CRASHPOST_* and proxy variables from leaking into tests."""
    cleared = {
        name: value
        for name, value in os.environ.items()
        if name.startswith("CRASHPOST_") or name.lower().endswith("_proxy")
    }
    with patch.dict(os.environ, {}, clear=False):
        for name in cleared:
            del os.environ[name]
        get_settings.cache_clear()
        yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def drain_background_pool() -> Generator[None, None, None]:
    """Finish background sends before the next test starts."""
    yield
    shutdown_background_pool(wait=True)


@pytest.fixture
def endpoint() -> str:
    """Return the test collection endpoint."""
    return ENDPOINT


@pytest.fixture
def settings() -> Settings:
    """Settings with an API key and the test endpoint."""
    return Settings(api_key="test-api-key", api_endpoint=ENDPOINT, _env_file=None)


@pytest.fixture
def reporter(settings: Settings) -> ErrorReporter:
    """A reporter configured against the test endpoint."""
    return ErrorReporter(settings=settings)
