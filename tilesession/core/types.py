"""
Core Type Definitions for the Tile Session Client

Implements Result/Either monads for non-raising helper APIs plus the
small value types shared by every layer: timestamps, map-type and
scale enumerations, tile coordinates and viewport bounds.

Design Principles:
- Never use null for absence (use Optional or Result)
- Value types are frozen and superseded, never mutated
- Closed enumerations parse from their wire strings
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Generic,
    Literal,
    TypeVar,
    Union,
)

from tilesession.core import constants as C

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type


# =============================================================================
# RESULT MONAD
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable container for successful computation results.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Carries the error value to the caller that checked is_err().
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    High-precision instant, nanoseconds since Unix epoch.

    Supports comparison and nanosecond arithmetic. Token expiry and
    refresh deadlines are expressed with it.
    """

    nanos: int

    @classmethod
    def now(cls) -> Timestamp:
        """Capture current wall-clock time."""
        return cls(nanos=time.time_ns())

    @classmethod
    def from_seconds(cls, seconds: float) -> Timestamp:
        """Convert floating-point epoch seconds to Timestamp."""
        return cls(nanos=int(seconds * C.NS_PER_S))

    @property
    def seconds(self) -> float:
        return self.nanos / C.NS_PER_S

    def plus_seconds(self, seconds: float) -> Timestamp:
        return self + int(seconds * C.NS_PER_S)

    def __sub__(self, other: Timestamp) -> int:
        """Subtract timestamps, returning difference in nanos."""
        return self.nanos - other.nanos

    def __add__(self, nanos: int) -> Timestamp:
        result = self.nanos + nanos
        if result < 0:
            raise OverflowError("Timestamp underflow")
        return Timestamp(nanos=result)

    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# =============================================================================
# REQUEST ENUMERATIONS
# =============================================================================
class MapType(Enum):
    """
    Imagery selectors accepted by the session handshake.

    The set is closed; anything else (e.g. "hybrid") is rejected at
    construction time.
    """
    ROADMAP = "roadmap"
    SATELLITE = "satellite"

    @classmethod
    def parse(cls, value: Any) -> Result[MapType, str]:
        if isinstance(value, cls):
            return Ok(value)
        for member in cls:
            if member.value == value:
                return Ok(member)
        return Err(f"'{value}' is an invalid mapType")


class ImageScale(Enum):
    """Scale factor requested for tile imagery."""
    X1 = "scaleFactor1x"
    X2 = "scaleFactor2x"
    X4 = "scaleFactor4x"

    @classmethod
    def parse(cls, value: Any) -> Result[ImageScale, str]:
        if isinstance(value, cls):
            return Ok(value)
        for member in cls:
            if member.value == value:
                return Ok(member)
        return Err(f"'{value}' is an invalid scale")


# =============================================================================
# GEOGRAPHY
# =============================================================================
@dataclass(frozen=True, slots=True)
class TileCoord:
    """Tile address in the z/x/y pyramid."""
    z: int
    x: int
    y: int

    def __str__(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"


@dataclass(frozen=True, slots=True)
class Bounds:
    """
    Viewport bounding box in degrees.

    The attribution endpoint expects the box as south, east, north, west;
    to_bbox() yields exactly that order.
    """
    south: float
    west: float
    north: float
    east: float

    def to_bbox(self) -> tuple[float, float, float, float]:
        return (self.south, self.east, self.north, self.west)
