"""
Session-Authenticated Map Tile Client

Access to a tiled-imagery service that requires a short-lived session
token on every request:
- Session Token Store: cached token, single-flight acquisition
- Token Acquirer: createSession handshake
- Refresh Scheduler: proactive renewal ahead of expiry
- Tile / Attribution Requesters: token-gated consumers
- GoogleTileLayer: map host lifecycle (attach, viewport, detach)

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from tilesession.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
    MapType,
    ImageScale,
    TileCoord,
    Bounds,
)
from tilesession.core.errors import (
    TileSessionError,
    ConfigurationError,
    TransportError,
    TokenAcquisitionError,
    TileFetchError,
    AttributionFetchError,
)
from tilesession.core.config import TileServiceConfig, TokenRequestConfig

# Session exports
from tilesession.session import (
    SessionToken,
    SessionTokenStore,
    TokenAcquirer,
    RefreshScheduler,
    SchedulerState,
)

# Transport exports
from tilesession.transport import HttpResponse, HttpTransport, HttpxTransport

# Layer exports
from tilesession.layer import (
    MapHost,
    Tile,
    TileRequester,
    AttributionRequester,
    GoogleTileLayer,
)

__all__ = [
    # Version
    "__version__",
    # Result monad
    "Result",
    "Ok",
    "Err",
    # Value types
    "Timestamp",
    "MapType",
    "ImageScale",
    "TileCoord",
    "Bounds",
    # Errors
    "TileSessionError",
    "ConfigurationError",
    "TransportError",
    "TokenAcquisitionError",
    "TileFetchError",
    "AttributionFetchError",
    # Config
    "TileServiceConfig",
    "TokenRequestConfig",
    # Session
    "SessionToken",
    "SessionTokenStore",
    "TokenAcquirer",
    "RefreshScheduler",
    "SchedulerState",
    # Transport
    "HttpResponse",
    "HttpTransport",
    "HttpxTransport",
    # Layer
    "MapHost",
    "Tile",
    "TileRequester",
    "AttributionRequester",
    "GoogleTileLayer",
]
