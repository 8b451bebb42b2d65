"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions for the client:
- Result/Either monads for non-raising helpers
- Coded error hierarchy
- Configuration management with validation
"""

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
    ErrorCode,
    TileSessionError,
    ConfigurationError,
    TransportError,
    TokenAcquisitionError,
    TileFetchError,
    AttributionFetchError,
)
from tilesession.core.config import (
    TileServiceConfig,
    TokenRequestConfig,
    EndpointConfig,
    RefreshConfig,
    TransportConfig,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "MapType",
    "ImageScale",
    "TileCoord",
    "Bounds",
    "ErrorCode",
    "TileSessionError",
    "ConfigurationError",
    "TransportError",
    "TokenAcquisitionError",
    "TileFetchError",
    "AttributionFetchError",
    "TileServiceConfig",
    "TokenRequestConfig",
    "EndpointConfig",
    "RefreshConfig",
    "TransportConfig",
]
