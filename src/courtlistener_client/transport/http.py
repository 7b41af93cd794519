"""
HTTP transport using httpx for async requests.

Performs exactly one HTTP exchange per call and returns the raw result.
Status interpretation and retries belong to the resilience layer, so this
module never raises on 4xx/5xx; network and timeout errors propagate as
httpx exceptions for the classifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from courtlistener_client.errors import TransportError
from courtlistener_client.telemetry.logger import get_logger
from courtlistener_client.transport.auth import get_auth_header

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = get_logger("courtlistener_client.transport.http")

# Default timeouts
DEFAULT_BASE_URL = "https://www.courtlistener.com/api/rest/v4/"
_DEFAULT_TIMEOUT = 30.0
_DEFAULT_CONNECT_TIMEOUT = 10.0


_UA_VERSION: str | None = None


def package_version() -> str:
    """Get package version for User-Agent (cached)."""
    global _UA_VERSION
    if _UA_VERSION is None:
        try:
            from importlib.metadata import PackageNotFoundError, version

            _UA_VERSION = version("courtlistener-client")
        except PackageNotFoundError:
            _UA_VERSION = "0.1.0"
    return _UA_VERSION


@dataclass(frozen=True)
class RawResponse:
    """One HTTP exchange as seen by the classifier.

    Attributes:
        status_code: HTTP status code
        headers: Response headers (case-insensitive when built from httpx)
        content: Raw response body
        url: Final request URL
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    content: bytes = b""
    url: str | None = None

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> RawResponse:
        return cls(
            status_code=response.status_code,
            headers=response.headers,
            content=response.content,
            url=str(response.request.url),
        )


class HttpTransport:
    """HTTP transport for CourtListener API communication.

    Example:
        >>> transport = HttpTransport(base_url=DEFAULT_BASE_URL, api_key="...")
        >>> raw = await transport.get("opinions/1/")
        >>> raw.status_code
        200
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            base_url: Base URL for relative endpoints
            api_key: API key for the Authorization header
            timeout: Default per-request timeout in seconds
            client: Pre-built httpx client (its base URL and headers are kept)
            user_agent: Override the User-Agent header
        """
        self._base_url = base_url
        self._timeout = timeout if timeout is not None else _DEFAULT_TIMEOUT
        self._auth_headers = get_auth_header(api_key)
        self._user_agent = user_agent or f"courtlistener-client/{package_version()}"
        self._client = client
        self._owns_client = client is None
        self._closed = False

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def has_api_key(self) -> bool:
        return bool(self._auth_headers)

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._closed:
            raise TransportError("Transport is closed", url=self._base_url)
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=_DEFAULT_CONNECT_TIMEOUT),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client (only if this transport created it)."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
        self._closed = True

    def _build_headers(self, extra_headers: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": self._user_agent,
        }
        headers.update(self._auth_headers)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> RawResponse:
        """Make one HTTP request.

        Args:
            method: HTTP method
            path: Request path (relative to base URL)
            params: Query parameters
            json: JSON body
            data: Form-encoded body
            headers: Additional headers
            timeout: Per-request timeout override in seconds

        Returns:
            RawResponse for any status code

        Raises:
            httpx.HTTPError: On network/connection/timeout errors
            TransportError: If the transport is closed
        """
        client = self._get_client()
        request_timeout = (
            httpx.Timeout(timeout, connect=min(timeout, _DEFAULT_CONNECT_TIMEOUT))
            if timeout is not None
            else httpx.USE_CLIENT_DEFAULT
        )

        logger.debug("HTTP request", method=method, endpoint=path)
        response = await client.request(
            method=method,
            url=path,
            params=params,
            json=json,
            data=data,
            headers=self._build_headers(headers),
            timeout=request_timeout,
        )
        return RawResponse.from_httpx(response)

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> RawResponse:
        """Make a GET request."""
        return await self.request("GET", path, params=params, timeout=timeout)

    async def post_json(
        self,
        path: str,
        body: Any,
        *,
        timeout: float | None = None,
    ) -> RawResponse:
        """Make a POST request with a JSON body."""
        return await self.request("POST", path, json=body, timeout=timeout)

    async def post_form(
        self,
        path: str,
        form: dict[str, str],
        *,
        timeout: float | None = None,
    ) -> RawResponse:
        """Make a POST request with a form-encoded body."""
        return await self.request("POST", path, data=form, timeout=timeout)

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
