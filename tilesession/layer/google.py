"""
Google Tile Layer: Session-Authenticated Tile Source

Ties the token lifecycle to a map host:
- on_attach: subscribe to viewport changes, allow refresh, acquire a
  token and fetch the first attribution
- on_detach: unsubscribe, disarm the refresh timer, clear the token
  and remove the attribution text

Usage:
    layer = GoogleTileLayer("API_KEY", map_type="satellite")
    layer.on_attach(host)

    tile = layer.create_tile(TileCoord(5, 16, 10), done)

    layer.on_detach(host)
    await layer.aclose()

Concurrency:
    Single event loop. on_attach/on_detach/create_tile are plain
    methods, called from code already running on the loop; they spawn
    the I/O as tasks.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Coroutine, Optional
from uuid import uuid4

from tilesession.core.config import TileServiceConfig
from tilesession.core.errors import TokenAcquisitionError
from tilesession.core.types import TileCoord, Timestamp
from tilesession.layer.attribution import AttributionDone, AttributionRequester
from tilesession.layer.host import MapHost
from tilesession.layer.tiles import Tile, TileDone, TileRequester
from tilesession.observability.logging import StructuredLogger
from tilesession.session.acquirer import TokenAcquirer
from tilesession.session.scheduler import RefreshScheduler, SchedulerState
from tilesession.session.store import SessionSnapshot, SessionTokenStore
from tilesession.session.token import SessionToken
from tilesession.transport.httpx_transport import HttpxTransport
from tilesession.transport.protocols import HttpTransport

logger = StructuredLogger(__name__)


class GoogleTileLayer:
    """
    Tile layer backed by a session-token protected tile service.

    Construction validates the configuration and raises
    ConfigurationError without an API key or with a map type outside
    {roadmap, satellite}. The new layer holds no token.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        map_type: Any = "roadmap",
        language: Optional[str] = None,
        region: Optional[str] = None,
        scale: Optional[str] = None,
        config: Optional[TileServiceConfig] = None,
        transport: Optional[HttpTransport] = None,
        clock: Callable[[], Timestamp] = Timestamp.now,
    ) -> None:
        if config is None:
            options: dict[str, Any] = {"map_type": map_type}
            if language is not None:
                options["language"] = language
            if region is not None:
                options["region"] = region
            if scale is not None:
                options["scale"] = scale
            config = TileServiceConfig.create(api_key, **options)

        self.layer_id = uuid4().hex[:8]
        self._config = config
        self._owns_transport = transport is None
        self._transport = transport or HttpxTransport(timeout_s=config.transport.timeout_s)

        self._store = SessionTokenStore(TokenAcquirer(config, self._transport, clock), clock)
        self._scheduler = RefreshScheduler(self._store, config.refresh, clock)
        self._store.add_listener(self._scheduler.arm)

        self._tiles = TileRequester(config, self._store, self._transport)
        self._attribution = AttributionRequester(config, self._store, self._transport)

        self._host: Optional[MapHost] = None
        self._tasks: set[asyncio.Task[Any]] = set()

    # -------------------------------------------------------------------------
    # host lifecycle
    # -------------------------------------------------------------------------
    def on_attach(self, host: MapHost) -> None:
        """Layer added to a map."""
        if self._host is not None:
            self.on_detach(self._host)

        self._host = host
        host.on_viewport_change(self._on_viewport_change)
        self._scheduler.attach()
        logger.info("Tile layer attached", layer_id=self.layer_id)

        self._spawn(self._prime())
        self._spawn(self.update_attribution())

    def on_detach(self, host: MapHost) -> None:
        """Layer removed from its map. Safe to call twice."""
        host.off_viewport_change(self._on_viewport_change)
        self._scheduler.disarm()
        self._store.clear()
        self._attribution.clear(host)
        if self._host is host:
            self._host = None
        logger.info("Tile layer detached", layer_id=self.layer_id)

    # -------------------------------------------------------------------------
    # tokens
    # -------------------------------------------------------------------------
    async def get_token(self) -> SessionToken:
        """Current session token, acquiring one if needed."""
        return await self._store.get_token()

    @property
    def state(self) -> SessionSnapshot:
        return self._store.state

    @property
    def scheduler_state(self) -> SchedulerState:
        return self._scheduler.state

    @property
    def refresh_armed(self) -> bool:
        return self._scheduler.refresh_armed

    @property
    def config(self) -> TileServiceConfig:
        return self._config

    # -------------------------------------------------------------------------
    # tiles
    # -------------------------------------------------------------------------
    def create_tile(self, coord: TileCoord, done: TileDone) -> Tile:
        with StructuredLogger.context(layer_id=self.layer_id, tile=str(coord)):
            return self._tiles.create_tile(coord, done)

    async def fetch_tile(self, coord: TileCoord) -> Tile:
        return await self._tiles.fetch_tile(coord)

    def get_tile_url(self, coord: TileCoord) -> Optional[str]:
        """Tile URL for the cached token, None before the first token."""
        token = self._store.current_token
        if token is None:
            return None
        return self._tiles.tile_url(coord, token)

    # -------------------------------------------------------------------------
    # attribution
    # -------------------------------------------------------------------------
    def get_attribution(self) -> Optional[str]:
        return self._attribution.text

    async def update_attribution(self, done: Optional[AttributionDone] = None) -> Optional[str]:
        """Refresh attribution for the attached host's viewport."""
        host = self._host
        if host is None:
            return None
        return await self._attribution.update(host, done)

    # -------------------------------------------------------------------------
    # shutdown
    # -------------------------------------------------------------------------
    async def drain(self) -> None:
        """Wait for background tile, attribution and priming tasks."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))
        await self._tiles.drain()

    async def aclose(self) -> None:
        """Detach if needed, let background work settle, close the transport."""
        if self._host is not None:
            self.on_detach(self._host)
        await self.drain()
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> GoogleTileLayer:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------
    def _on_viewport_change(self) -> None:
        self._spawn(self.update_attribution())

    async def _prime(self) -> None:
        try:
            token = await self._store.get_token()
        except TokenAcquisitionError as e:
            self._scheduler.arm_retry(e)
            return
        # A token cached before attach never reached the listener.
        if not self._scheduler.refresh_armed:
            self._scheduler.arm(token)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        with StructuredLogger.context(layer_id=self.layer_id):
            task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"Background task failed: {task.exception()!r}",
                layer_id=self.layer_id,
            )
