"""
Session Token: Immutable Credential Value Object

A token is superseded by a newer one, never mutated. Expiry is an
absolute instant computed when the handshake response is parsed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from tilesession.core import constants as C
from tilesession.core.errors import TokenAcquisitionError
from tilesession.core.types import Timestamp


@dataclass(frozen=True, slots=True)
class SessionToken:
    """
    Short-lived credential for tile and attribution requests.

    Only `value` and `expires_at` drive behaviour; the remaining fields
    echo what the service reports about the session's imagery.
    """
    value: str
    expires_at: Timestamp
    tile_width: Optional[int] = None
    tile_height: Optional[int] = None
    image_format: Optional[str] = None

    @classmethod
    def from_response(
        cls,
        payload: Any,
        now: Timestamp,
        status: Optional[int] = None,
    ) -> SessionToken:
        """
        Parse a handshake response body.

        The `expiry` field is read as a lifetime in seconds added to `now`.
        Values that are already absolute epoch seconds are used as-is.

        Raises:
            TokenAcquisitionError: body is not an object, `session` is
                missing or empty, or `expiry` is not numeric
        """
        if not isinstance(payload, Mapping):
            raise TokenAcquisitionError.malformed_response("body is not a JSON object", status)

        value = payload.get("session")
        if not isinstance(value, str) or not value:
            raise TokenAcquisitionError.malformed_response("missing 'session'", status)

        try:
            expiry = float(payload["expiry"])
        except (KeyError, TypeError, ValueError):
            raise TokenAcquisitionError.malformed_response("missing or non-numeric 'expiry'", status)

        if expiry >= C.EPOCH_EXPIRY_THRESHOLD_S:
            expires_at = Timestamp.from_seconds(expiry)
        else:
            expires_at = now.plus_seconds(expiry)

        return cls(
            value=value,
            expires_at=expires_at,
            tile_width=_optional_int(payload.get("tileWidth")),
            tile_height=_optional_int(payload.get("tileHeight")),
            image_format=payload.get("imageFormat"),
        )

    def is_expired(self, now: Timestamp) -> bool:
        return now >= self.expires_at

    def seconds_remaining(self, now: Timestamp) -> float:
        return (self.expires_at - now) / C.NS_PER_S

    def __repr__(self) -> str:
        # Credential stays out of logs and tracebacks.
        return f"SessionToken(value={self.value[:6]}..., expires_at={self.expires_at!r})"


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
