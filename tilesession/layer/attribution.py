"""
Attribution Requester

Fetches the copyright text for the current viewport and swaps it into
the host's attribution display (remove old, then add new).

Ordering:
    Every update takes a request number from a monotonically increasing
    counter. A response is applied only if it is newer than the last
    applied one, so overlapping viewport changes cannot leave stale text
    on screen. clear() also advances the watermark, dropping anything
    still in flight.

Failures are best-effort: logged and reported to the optional `done`
callback, never raised.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from tilesession.core.config import TileServiceConfig
from tilesession.core.errors import (
    AttributionFetchError,
    TokenAcquisitionError,
    TransportError,
)
from tilesession.core.types import Bounds
from tilesession.layer.host import MapHost
from tilesession.session.store import SessionTokenStore
from tilesession.session.token import SessionToken
from tilesession.transport.protocols import HttpTransport

logger = logging.getLogger(__name__)

AttributionDone = Callable[[Optional[AttributionFetchError], Optional[str]], None]


class AttributionRequester:
    """Keeps one layer's attribution text in sync with the viewport."""

    __slots__ = ("_config", "_store", "_transport", "_text", "_issued", "_applied")

    def __init__(
        self,
        config: TileServiceConfig,
        store: SessionTokenStore,
        transport: HttpTransport,
    ) -> None:
        self._config = config
        self._store = store
        self._transport = transport
        self._text: Optional[str] = None
        self._issued = 0
        self._applied = 0

    @property
    def text(self) -> Optional[str]:
        """Attribution currently shown by the host for this layer."""
        return self._text

    def attribution_url(self, token: SessionToken, zoom: int, bounds: Bounds) -> str:
        south, east, north, west = bounds.to_bbox()
        return self._config.endpoints.attribution_url(
            session_token=token.value,
            zoom=zoom,
            south=south,
            east=east,
            north=north,
            west=west,
            api_key=self._config.api_key,
        )

    async def update(
        self,
        host: MapHost,
        done: Optional[AttributionDone] = None,
    ) -> Optional[str]:
        """
        Refresh the attribution for the host's current viewport.

        Returns the text now displayed, or None if nothing was applied.
        """
        if not host.has_attribution_control():
            return None

        self._issued += 1
        seq = self._issued

        try:
            text = await self._fetch(host)
        except AttributionFetchError as e:
            logger.warning(f"Attribution update failed: {e}", extra={"error": e.to_dict()})
            if done is not None:
                done(e, None)
            return None

        if seq <= self._applied:
            logger.debug(f"Discarding stale attribution response #{seq}")
            return None

        self._applied = seq
        self._replace(host, text)
        if done is not None:
            done(None, text)
        return text

    def clear(self, host: MapHost) -> None:
        """Remove this layer's text from the host and drop in-flight updates."""
        self._applied = self._issued
        if self._text is not None:
            host.remove_attribution_text(self._text)
            self._text = None

    async def _fetch(self, host: MapHost) -> str:
        try:
            token = await self._store.get_token()
        except TokenAcquisitionError as e:
            raise AttributionFetchError.token_unavailable(e) from e

        url = self.attribution_url(token, host.current_zoom(), host.current_bounds())
        try:
            response = await self._transport.request("GET", url)
        except TransportError as e:
            raise AttributionFetchError.transport_failed(e) from e

        if not response.ok:
            raise AttributionFetchError.http_status(response.status)

        try:
            payload = response.json()
        except ValueError as e:
            raise AttributionFetchError.malformed_response(f"invalid JSON ({e})") from e

        text = payload.get("copyright") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise AttributionFetchError.malformed_response("missing 'copyright'")
        return text

    def _replace(self, host: MapHost, text: str) -> None:
        if self._text is not None:
            host.remove_attribution_text(self._text)
        self._text = text
        host.add_attribution_text(text)
