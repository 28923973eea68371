"""HTTP transport for posting reports to the collection endpoint."""

from __future__ import annotations

import urllib.request
from urllib.parse import urlsplit

import httpx

from crashpost.observability import API_KEY_HEADER, LogEvents, get_logger

logger = get_logger(__name__)


def resolve_system_proxy(endpoint: str) -> str | None:
    """Return the system proxy URL to use for ``endpoint``, if any.

    Reads the platform proxy configuration (``*_proxy`` environment variables,
    plus the registry or system settings on Windows and macOS) and honors its
    bypass list. A proxy that resolves to the endpoint itself is ignored.
    """
    parts = urlsplit(endpoint)
    proxies = urllib.request.getproxies()
    proxy_url = proxies.get(parts.scheme) or proxies.get("all")
    if not proxy_url:
        return None
    if parts.hostname and urllib.request.proxy_bypass(parts.hostname):
        return None
    if proxy_url.rstrip("/") == endpoint.rstrip("/"):
        return None
    return proxy_url


class ReportTransport:
    """Posts serialized reports with the static API key header.

    A new ``httpx.Client`` is opened per report; timeouts are httpx defaults.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        proxy_credentials: tuple[str, str] | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            endpoint: Full URL reports are posted to.
            api_key: Value of the ``X-ApiKey`` header.
            proxy_credentials: Username and password for the system proxy.
                When omitted, credentials embedded in the proxy URL are used.
        """
        self.endpoint = endpoint
        self.api_key = api_key
        self.proxy_credentials = proxy_credentials

    def _get_headers(self) -> dict[str, str]:
        return {
            API_KEY_HEADER: self.api_key,
            "Content-Type": "application/json; charset=utf-8",
        }

    def _build_proxy(self) -> httpx.Proxy | None:
        proxy_url = resolve_system_proxy(self.endpoint)
        if proxy_url is None:
            return None
        if self.proxy_credentials is None:
            return httpx.Proxy(proxy_url)
        return httpx.Proxy(proxy_url, auth=self.proxy_credentials)

    def post(self, payload: str) -> httpx.Response:
        """POST ``payload`` as UTF-8.

        Raises:
            httpx.HTTPError: On connection failure or a non-2xx response.
        """
        # Proxy resolution already happened above; httpx must not redo it
        with httpx.Client(proxy=self._build_proxy(), trust_env=False) as client:
            response = client.post(
                self.endpoint,
                content=payload.encode("utf-8"),
                headers=self._get_headers(),
            )
            response.raise_for_status()

        logger.debug(
            LogEvents.REPORT_SEND_SUCCEEDED,
            endpoint=self.endpoint,
            status_code=response.status_code,
        )
        return response
