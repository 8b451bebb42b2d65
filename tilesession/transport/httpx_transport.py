"""
httpx-backed HTTP transport.

One AsyncClient is reused for every request of a layer so the
handshake, tile and attribution calls share connections.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from tilesession.core import constants as C
from tilesession.core.errors import TransportError
from tilesession.transport.protocols import HttpResponse

logger = logging.getLogger(__name__)


class HttpxTransport:
    """
    HttpTransport over httpx.AsyncClient.

    Usage:
        async with HttpxTransport(timeout_s=10) as transport:
            response = await transport.request("GET", url)
    """

    __slots__ = ("_client", "_owns_client")

    def __init__(
        self,
        *,
        timeout_s: float = C.REQUEST_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        try:
            response = await self._client.request(
                method,
                url,
                json=json,
                headers=dict(headers) if headers else None,
            )
        except httpx.HTTPError as e:
            logger.debug(f"{method} {_redact(url)} failed: {e}")
            raise TransportError.request_failed(method, _redact(url), e) from e

        return HttpResponse(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


def _redact(url: str) -> str:
    """Strip the query string, which carries the key and session token."""
    return url.split("?", 1)[0]
