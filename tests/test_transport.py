"""Tests for the report transport and proxy resolution."""

from __future__ import annotations

import httpx
import pytest
import respx

from crashpost.transport import ReportTransport, resolve_system_proxy

ENDPOINT = "https://collector.test/entries"


# =============================================================================
# Proxy resolution
# =============================================================================


class TestResolveSystemProxy:
    """Tests for system proxy lookup."""

    def test_no_proxy_configured(self) -> None:
        assert resolve_system_proxy(ENDPOINT) is None

    def test_proxy_for_scheme(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("https_proxy", "http://proxy.internal:3128")

        assert resolve_system_proxy(ENDPOINT) == "http://proxy.internal:3128"

    def test_proxy_for_other_scheme_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("http_proxy", "http://proxy.internal:3128")

        assert resolve_system_proxy(ENDPOINT) is None

    def test_bypassed_host(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("https_proxy", "http://proxy.internal:3128")
        monkeypatch.setenv("no_proxy", "collector.test")

        assert resolve_system_proxy(ENDPOINT) is None

    def test_proxy_equal_to_endpoint_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A proxy that points back at the endpoint is treated as no proxy."""
        monkeypatch.setenv("https_proxy", ENDPOINT + "/")

        assert resolve_system_proxy(ENDPOINT) is None


# =============================================================================
# ReportTransport
# =============================================================================


class TestReportTransport:
    """Tests for posting serialized reports."""

    def test_no_proxy(self) -> None:
        assert ReportTransport(ENDPOINT, "key")._build_proxy() is None

    def test_proxy_credentials_are_applied(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("https_proxy", "http://proxy.internal:3128")
        transport = ReportTransport(ENDPOINT, "key", proxy_credentials=("alice", "s3cret"))

        proxy = transport._build_proxy()

        assert proxy is not None
        assert proxy.url == httpx.URL("http://proxy.internal:3128")
        assert proxy.auth == ("alice", "s3cret")

    def test_proxy_without_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("https_proxy", "http://proxy.internal:3128")

        proxy = ReportTransport(ENDPOINT, "key")._build_proxy()

        assert proxy is not None
        assert proxy.auth is None

    @respx.mock
    def test_post_sends_api_key_and_utf8_body(self) -> None:
        route = respx.post(ENDPOINT).mock(return_value=httpx.Response(202))

        response = ReportTransport(ENDPOINT, "abc123").post('{"message": "café"}')

        assert response.status_code == 202
        request = route.calls.last.request
        assert request.headers["X-ApiKey"] == "abc123"
        assert request.headers["Content-Type"] == "application/json; charset=utf-8"
        assert request.content == '{"message": "café"}'.encode()

    @respx.mock
    def test_non_success_status_raises(self) -> None:
        respx.post(ENDPOINT).mock(return_value=httpx.Response(401))

        with pytest.raises(httpx.HTTPStatusError):
            ReportTransport(ENDPOINT, "wrong").post("{}")

    @respx.mock
    def test_connection_error_raises(self) -> None:
        respx.post(ENDPOINT).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(httpx.ConnectError):
            ReportTransport(ENDPOINT, "abc123").post("{}")
