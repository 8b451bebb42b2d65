"""
Error Hierarchy for the Tile Session Client

Design Principles:
- Configuration errors are fatal and raised synchronously at construction
- Token errors are broadcast to every waiter of one acquisition
- Tile and attribution errors never touch the shared token state
- Carry full error context for debugging and audit trails

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause chain for root cause analysis
- Timestamp for correlation with logs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from tilesession.core import constants as C
from tilesession.core.types import TileCoord, Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Configuration errors
    - 2xxx: Session token errors
    - 3xxx: Tile errors
    - 4xxx: Attribution errors
    - 9xxx: Transport errors
    """

    # Configuration errors (1xxx)
    CONFIG_MISSING_API_KEY = 1001
    CONFIG_INVALID_MAP_TYPE = 1002
    CONFIG_INVALID_VALUE = 1003

    # Token errors (2xxx)
    TOKEN_HTTP_STATUS = 2001
    TOKEN_TRANSPORT_FAILED = 2002
    TOKEN_MALFORMED_RESPONSE = 2003

    # Tile errors (3xxx)
    TILE_HTTP_STATUS = 3001
    TILE_TRANSPORT_FAILED = 3002
    TILE_TOKEN_UNAVAILABLE = 3003

    # Attribution errors (4xxx)
    ATTRIBUTION_HTTP_STATUS = 4001
    ATTRIBUTION_TRANSPORT_FAILED = 4002
    ATTRIBUTION_MALFORMED_RESPONSE = 4003
    ATTRIBUTION_TOKEN_UNAVAILABLE = 4004

    # Transport errors (9xxx)
    TRANSPORT_ERROR = 9002


def _truncate(body: str) -> str:
    if len(body) <= C.ERROR_BODY_LIMIT:
        return body
    return body[:C.ERROR_BODY_LIMIT] + "..."


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass(eq=False)
class TileSessionError(Exception):
    """
    Base class for all tile session errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp of creation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize error to dictionary for logging.

        The cause is rendered as its message only.
        """
        data = {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass(eq=False)
class ConfigurationError(TileSessionError):
    """Invalid construction parameters. Always fatal."""

    @classmethod
    def missing_api_key(cls) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_MISSING_API_KEY,
            message="Must supply an API key",
        )

    @classmethod
    def invalid_map_type(cls, value: Any) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_MAP_TYPE,
            message=f"'{value}' is an invalid mapType",
            context={"map_type": str(value)},
        )

    @classmethod
    def invalid_value(cls, name: str, value: Any, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid {name}={value!r}: {reason}",
            context={"field": name, "value": repr(value)},
        )


# =============================================================================
# TRANSPORT ERRORS
# =============================================================================
@dataclass(eq=False)
class TransportError(TileSessionError):
    """
    The HTTP request could not be completed (DNS, connect, timeout...).

    Raised by transports; wrapped by the requesters into their own
    error types with this error as the cause.
    """

    @classmethod
    def request_failed(
        cls,
        method: str,
        url: str,
        cause: Optional[BaseException] = None,
    ) -> TransportError:
        return cls(
            code=ErrorCode.TRANSPORT_ERROR,
            message=f"{method} request failed: {cause}",
            cause=cause,
            context={"method": method, "url": url},
        )


# =============================================================================
# TOKEN ERRORS
# =============================================================================
@dataclass(eq=False)
class TokenAcquisitionError(TileSessionError):
    """
    The session handshake failed.

    One instance is delivered to every waiter of the failed acquisition.
    """

    @property
    def status(self) -> Optional[int]:
        """HTTP status of the handshake, None when none was received."""
        return self.context.get("status")

    @classmethod
    def http_status(cls, status: int, body: str = "") -> TokenAcquisitionError:
        return cls(
            code=ErrorCode.TOKEN_HTTP_STATUS,
            message=f"Session handshake returned HTTP {status}",
            context={"status": status, "body": _truncate(body)},
        )

    @classmethod
    def transport_failed(cls, cause: BaseException) -> TokenAcquisitionError:
        return cls(
            code=ErrorCode.TOKEN_TRANSPORT_FAILED,
            message=f"Session handshake could not be sent: {cause}",
            cause=cause,
            context={"status": None},
        )

    @classmethod
    def malformed_response(
        cls,
        reason: str,
        status: Optional[int] = None,
    ) -> TokenAcquisitionError:
        return cls(
            code=ErrorCode.TOKEN_MALFORMED_RESPONSE,
            message=f"Session handshake response unusable: {reason}",
            context={"status": status},
        )


# =============================================================================
# TILE ERRORS
# =============================================================================
@dataclass(eq=False)
class TileFetchError(TileSessionError):
    """A single tile could not be loaded."""

    @property
    def coord(self) -> Optional[str]:
        return self.context.get("coord")

    @classmethod
    def http_status(cls, coord: TileCoord, status: int) -> TileFetchError:
        return cls(
            code=ErrorCode.TILE_HTTP_STATUS,
            message=f"Tile {coord} returned HTTP {status}",
            context={"coord": str(coord), "status": status},
        )

    @classmethod
    def transport_failed(cls, coord: TileCoord, cause: BaseException) -> TileFetchError:
        return cls(
            code=ErrorCode.TILE_TRANSPORT_FAILED,
            message=f"Tile {coord} request failed: {cause}",
            cause=cause,
            context={"coord": str(coord)},
        )

    @classmethod
    def token_unavailable(cls, coord: TileCoord, cause: BaseException) -> TileFetchError:
        return cls(
            code=ErrorCode.TILE_TOKEN_UNAVAILABLE,
            message=f"Tile {coord} has no session token: {cause}",
            cause=cause,
            context={"coord": str(coord)},
        )


# =============================================================================
# ATTRIBUTION ERRORS
# =============================================================================
@dataclass(eq=False)
class AttributionFetchError(TileSessionError):
    """Attribution text could not be refreshed. Logged, never surfaced."""

    @classmethod
    def http_status(cls, status: int) -> AttributionFetchError:
        return cls(
            code=ErrorCode.ATTRIBUTION_HTTP_STATUS,
            message=f"Attribution request returned HTTP {status}",
            context={"status": status},
        )

    @classmethod
    def transport_failed(cls, cause: BaseException) -> AttributionFetchError:
        return cls(
            code=ErrorCode.ATTRIBUTION_TRANSPORT_FAILED,
            message=f"Attribution request failed: {cause}",
            cause=cause,
        )

    @classmethod
    def malformed_response(cls, reason: str) -> AttributionFetchError:
        return cls(
            code=ErrorCode.ATTRIBUTION_MALFORMED_RESPONSE,
            message=f"Attribution response unusable: {reason}",
        )

    @classmethod
    def token_unavailable(cls, cause: BaseException) -> AttributionFetchError:
        return cls(
            code=ErrorCode.ATTRIBUTION_TOKEN_UNAVAILABLE,
            message=f"Attribution skipped, no session token: {cause}",
            cause=cause,
        )
