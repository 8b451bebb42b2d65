"""
Tile Requester

Each tile waits for a valid session token, then builds its URL and
fetches the image. A failure reaches only that tile's completion
callback; the shared token state is never touched from here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from tilesession.core.config import TileServiceConfig
from tilesession.core.errors import TileFetchError, TokenAcquisitionError, TransportError
from tilesession.core.types import TileCoord
from tilesession.session.store import SessionTokenStore
from tilesession.session.token import SessionToken
from tilesession.transport.protocols import HttpTransport

logger = logging.getLogger(__name__)


@dataclass
class Tile:
    """
    Tile handed to the host.

    Returned before its image is loaded; `url`, `data` and `error` are
    filled in when the load settles. Alt text stays empty so screen
    readers do not read out URLs.
    """
    coord: TileCoord
    alt: str = ""
    url: Optional[str] = None
    data: Optional[bytes] = None
    content_type: Optional[str] = None
    error: Optional[TileFetchError] = None

    @property
    def loaded(self) -> bool:
        return self.data is not None


TileDone = Callable[[Optional[TileFetchError], Tile], None]


class TileRequester:
    """
    Loads tiles for one layer.

    Usage:
        tile = tiles.create_tile(TileCoord(3, 4, 2), done)   # callback style
        tile = await tiles.fetch_tile(TileCoord(3, 4, 2))    # awaitable
    """

    __slots__ = ("_config", "_store", "_transport", "_tasks")

    def __init__(
        self,
        config: TileServiceConfig,
        store: SessionTokenStore,
        transport: HttpTransport,
    ) -> None:
        self._config = config
        self._store = store
        self._transport = transport
        self._tasks: set[asyncio.Task[None]] = set()

    def tile_url(self, coord: TileCoord, token: SessionToken) -> str:
        return self._config.endpoints.tile_url(
            z=coord.z,
            x=coord.x,
            y=coord.y,
            session_token=token.value,
            api_key=self._config.api_key,
        )

    def create_tile(self, coord: TileCoord, done: TileDone) -> Tile:
        """
        Return a placeholder tile now and load it in the background.

        `done(error, tile)` is called exactly once, with error None on
        success.
        """
        tile = Tile(coord=coord)
        task = asyncio.get_running_loop().create_task(self._load_and_notify(tile, done))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return tile

    async def fetch_tile(self, coord: TileCoord) -> Tile:
        """
        Load one tile.

        Raises:
            TileFetchError: no token, transport failure or non-2xx status
        """
        tile = Tile(coord=coord)
        await self._load(tile)
        return tile

    async def drain(self) -> None:
        """Wait for every background tile load to settle."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    async def _load(self, tile: Tile) -> None:
        coord = tile.coord
        try:
            token = await self._store.get_token()
        except TokenAcquisitionError as e:
            raise TileFetchError.token_unavailable(coord, e) from e

        tile.url = self.tile_url(coord, token)
        try:
            response = await self._transport.request("GET", tile.url)
        except TransportError as e:
            raise TileFetchError.transport_failed(coord, e) from e

        if not response.ok:
            raise TileFetchError.http_status(coord, response.status)

        tile.data = response.body
        tile.content_type = _header(response.headers, "content-type")

    async def _load_and_notify(self, tile: Tile, done: TileDone) -> None:
        try:
            await self._load(tile)
        except TileFetchError as e:
            self._fail(tile, done, e)
            return
        except Exception as e:
            # Transport outside the HttpTransport contract
            self._fail(tile, done, TileFetchError.transport_failed(tile.coord, e))
            return
        done(None, tile)

    def _fail(self, tile: Tile, done: TileDone, error: TileFetchError) -> None:
        tile.error = error
        logger.error(f"Tile {tile.coord} failed: {error}", extra={"error": error.to_dict()})
        done(error, tile)


def _header(headers: dict, name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None
