"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from crashpost import ErrorReporter, Settings, get_settings


class TestSettings:
    """Tests for Settings parsing and validation."""

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.api_key == ""
        assert settings.api_endpoint == "http://localhost:8000/entries"
        assert settings.ignore_header_names == []
        assert settings.excluded_status_codes == []
        assert settings.throw_on_error is False
        assert settings.log_level == "INFO"

    def test_comma_separated_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CRASHPOST_API_KEY", "abc123")
        monkeypatch.setenv("CRASHPOST_IGNORE_HEADER_NAMES", "Authorization, X-Session-Token,")
        monkeypatch.setenv("CRASHPOST_IGNORE_FORM_FIELD_NAMES", "password")
        monkeypatch.setenv("CRASHPOST_EXCLUDED_STATUS_CODES", "404, 418")
        monkeypatch.setenv("CRASHPOST_THROW_ON_ERROR", "true")

        settings = Settings(_env_file=None)

        assert settings.api_key == "abc123"
        assert settings.ignore_header_names == ["Authorization", "X-Session-Token"]
        assert settings.ignore_form_field_names == ["password"]
        assert settings.excluded_status_codes == [404, 418]
        assert settings.throw_on_error is True

    def test_log_level_is_normalized(self) -> None:
        assert Settings(log_level="debug", _env_file=None).log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            Settings(log_level="verbose", _env_file=None)

    @pytest.mark.parametrize("codes", ["99", "600", "404,abc"])
    def test_invalid_status_codes(self, codes: str) -> None:
        with pytest.raises(ValidationError):
            Settings(excluded_status_codes=codes, _env_file=None)

    def test_endpoint_must_be_http(self) -> None:
        with pytest.raises(ValidationError):
            Settings(api_endpoint="ftp://collector.test/entries", _env_file=None)

    def test_get_settings_is_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CRASHPOST_API_KEY", "from-env")

        assert get_settings() is get_settings()
        assert get_settings().api_key == "from-env"

    def test_reporter_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CRASHPOST_API_KEY", "from-env")
        monkeypatch.setenv("CRASHPOST_EXCLUDED_STATUS_CODES", "404")
        monkeypatch.setenv("CRASHPOST_IGNORE_COOKIE_NAMES", "Session")

        reporter = ErrorReporter()

        assert reporter.validate_api_key() is True
        assert reporter.excluded_status_codes == {404}
        assert reporter.request_message_options.ignored_cookie_names == {"session"}
