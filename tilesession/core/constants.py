"""
System-Wide Constants for the Tile Session Client

All endpoint templates, timing defaults and enumerated wire values
centralized here.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
NS_PER_S: Final[int] = 1_000_000_000
SECOND_MS: Final[int] = 1_000
MINUTE_MS: Final[int] = 60 * SECOND_MS

# =============================================================================
# ENDPOINTS
# =============================================================================
DEFAULT_BASE_URL: Final[str] = "https://www.googleapis.com/tile/v1"

SESSION_TOKEN_PATH: Final[str] = "/createSession?key={api_key}"
TILE_PATH: Final[str] = (
    "/tiles/{z}/{x}/{y}?session={session_token}&orientation=0&key={api_key}"
)
ATTRIBUTION_PATH: Final[str] = (
    "/viewport?session={session_token}&zoom={zoom}"
    "&south={south}&east={east}&north={north}&west={west}&key={api_key}"
)

# =============================================================================
# SESSION REQUEST DEFAULTS
# =============================================================================
DEFAULT_MAP_TYPE: Final[str] = "roadmap"
DEFAULT_LANGUAGE: Final[str] = "en-GB"
DEFAULT_REGION: Final[str] = "gb"
DEFAULT_SCALE: Final[str] = "scaleFactor1x"

# =============================================================================
# REFRESH
# =============================================================================
REFRESH_SAFETY_MARGIN_S: Final[float] = 3600.0  # Renew 1h before expiry
REFRESH_RETRY_BASE_MS: Final[int] = 1 * SECOND_MS
REFRESH_RETRY_MAX_MS: Final[int] = 1 * MINUTE_MS

# Values of the handshake "expiry" field at or above this are epoch seconds,
# below it they are a lifetime.
EPOCH_EXPIRY_THRESHOLD_S: Final[float] = 1_000_000_000.0

# =============================================================================
# TRANSPORT
# =============================================================================
REQUEST_TIMEOUT_S: Final[float] = 30.0
ERROR_BODY_LIMIT: Final[int] = 500

# =============================================================================
# ENVIRONMENT
# =============================================================================
ENV_PREFIX: Final[str] = "TILESESSION_"
