"""
Layer module: the map-facing side of the client.

- MapHost: protocol the map widget implements
- TileRequester / AttributionRequester: token-gated consumers
- GoogleTileLayer: lifecycle facade tying them to a host
"""

from tilesession.layer.host import MapHost
from tilesession.layer.tiles import Tile, TileRequester
from tilesession.layer.attribution import AttributionRequester
from tilesession.layer.google import GoogleTileLayer

__all__ = [
    "MapHost",
    "Tile",
    "TileRequester",
    "AttributionRequester",
    "GoogleTileLayer",
]
