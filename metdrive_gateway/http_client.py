"""Outbound HTTP client for the identity, collection and storage APIs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)


class HttpClientError(Exception):
    """Base exception for outbound request failures."""
    pass


class TransportError(HttpClientError):
    """Network or connection failure (including transport timeouts)."""
    pass


class ResponseFormatError(HttpClientError):
    """Response body could not be parsed as JSON."""
    pass


class RemoteStatusError(HttpClientError):
    """Remote peer answered with a 4xx/5xx status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"remote returned {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class EndpointSpec:
    host: str
    path: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    scheme: str = "https"

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}{self.path}"

    @classmethod
    def from_url(
        cls,
        url: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
    ) -> "EndpointSpec":
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"not an absolute URL: {url!r}")
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        return cls(
            host=parts.netloc,
            path=path,
            method=method,
            headers=dict(headers or {}),
            scheme=parts.scheme,
        )


class HttpJsonClient:
    """
    Single request/response exchanges against remote HTTP endpoints.

    One shared ``httpx.AsyncClient`` is created lazily and reused for every
    call. Nothing is retried; every failure is raised to the caller as an
    ``HttpClientError`` subclass.
    """

    def __init__(
        self,
        timeout: Optional[float] = 30.0,
        force_ipv4: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            timeout: Transport timeout in seconds (None disables it)
            force_ipv4: Bind outbound connections to the IPv4 wildcard address
            transport: Custom transport (used by tests to mock remote peers)
        """
        self.timeout = timeout
        self.force_ipv4 = force_ipv4
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            transport = self._transport
            if transport is None and self.force_ipv4:
                transport = httpx.AsyncHTTPTransport(local_address="0.0.0.0")
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(
        self,
        spec: EndpointSpec,
        body: Union[bytes, str, None],
    ) -> httpx.Response:
        logger.info(f"Starting API call to {spec.host}{spec.path}")
        content = body.encode("utf-8") if isinstance(body, str) else body
        client = await self._get_client()
        try:
            response = await client.request(
                spec.method,
                spec.url,
                headers=dict(spec.headers),
                content=content,
            )
        except httpx.TimeoutException as e:
            logger.error(f"API call to {spec.host}{spec.path} timed out: {e}")
            raise TransportError(f"request to {spec.host} timed out") from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            # connection, decoding, redirect-loop and malformed-URL failures
            logger.error(f"API call to {spec.host}{spec.path} failed: {e}")
            raise TransportError(f"request to {spec.host} failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                f"API call to {spec.host}{spec.path} returned {response.status_code}"
            )
            raise RemoteStatusError(response.status_code, response.text)
        return response

    async def request(
        self,
        spec: EndpointSpec,
        body: Union[bytes, str, None] = None,
    ) -> Any:
        """
        Perform one exchange and parse the response body as JSON.

        Raises:
            TransportError: Connection failed or timed out
            RemoteStatusError: Peer answered with an error status
            ResponseFormatError: Body is not valid JSON
        """
        response = await self._send(spec, body)
        try:
            return response.json()
        except ValueError as e:
            raise ResponseFormatError(
                f"response from {spec.host}{spec.path} is not valid JSON"
            ) from e

    async def fetch_bytes(self, spec: EndpointSpec) -> bytes:
        """Perform one exchange and return the whole response body."""
        response = await self._send(spec, None)
        return response.content


def bearer_headers(token: str, content_type: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": content_type,
    }
