"""
Session Token Store: Cached Token with Single-Flight Acquisition

Owns the layer's SessionState exclusively:
- current_token: last successfully acquired token, replaced only by a
  token that expires no earlier, cleared only on teardown
- pending: the one in-flight acquisition every caller attaches to
- refresh_armed: mirrors whether the refresh scheduler holds a timer

Concurrency:
    All mutation happens on the event loop thread between awaits, so
    no lock is needed. Waiters attach through asyncio.shield() so a
    cancelled caller never cancels the shared handshake.

Teardown:
    clear() bumps a generation counter. An acquisition started before
    the teardown still resolves its own waiters but its token is not
    stored and no listener is notified.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from tilesession.core.errors import TokenAcquisitionError
from tilesession.core.types import Timestamp
from tilesession.session.acquirer import TokenAcquirer
from tilesession.session.token import SessionToken

logger = logging.getLogger(__name__)

TokenListener = Callable[[SessionToken], None]


# =============================================================================
# SESSION STATE
# =============================================================================
@dataclass
class SessionState:
    """Mutable state, reached only through SessionTokenStore."""
    current_token: Optional[SessionToken] = None
    pending: Optional[asyncio.Task[SessionToken]] = None
    refresh_armed: bool = False
    generation: int = 0


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only view of SessionState for callers and tests."""
    current_token: Optional[SessionToken]
    has_pending: bool
    refresh_armed: bool
    generation: int
    handshake_count: int

    @property
    def is_empty(self) -> bool:
        return self.current_token is None and not self.has_pending


# =============================================================================
# STORE
# =============================================================================
class SessionTokenStore:
    """
    Token cache with single-flight acquisition.

    Usage:
        store = SessionTokenStore(acquirer)
        store.add_listener(scheduler.arm)

        token = await store.get_token()

    Guarantees:
        - Every get_token() issued before an acquisition resolves sees
          the same token or the same TokenAcquisitionError instance
        - A failed acquisition clears `pending`, so the next call retries
    """

    __slots__ = ("_acquirer", "_clock", "_state", "_listeners", "_handshakes")

    def __init__(
        self,
        acquirer: TokenAcquirer,
        clock: Callable[[], Timestamp] = Timestamp.now,
    ) -> None:
        self._acquirer = acquirer
        self._clock = clock
        self._state = SessionState()
        self._listeners: list[TokenListener] = []
        self._handshakes = 0

    async def get_token(self) -> SessionToken:
        """
        Return a usable token, acquiring one if needed.

        The cached token is returned immediately while unexpired;
        otherwise the caller joins the in-flight acquisition, starting
        one when none exists.

        Raises:
            TokenAcquisitionError: shared by all waiters of the failed
                acquisition
        """
        token = self._state.current_token
        if token is not None and not token.is_expired(self._clock()):
            return token
        return await asyncio.shield(self._ensure_pending())

    async def refresh(self) -> SessionToken:
        """
        Force a new acquisition, joining one already in flight.

        The current token keeps being served to get_token() callers
        until the replacement arrives.
        """
        return await asyncio.shield(self._ensure_pending())

    def clear(self) -> None:
        """Drop the token and the pending reference (teardown)."""
        self._state.generation += 1
        self._state.current_token = None
        self._state.pending = None
        self._state.refresh_armed = False

    def add_listener(self, listener: TokenListener) -> None:
        """Register a callback invoked with every newly stored token."""
        self._listeners.append(listener)

    def remove_listener(self, listener: TokenListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_refresh_armed(self, armed: bool) -> None:
        self._state.refresh_armed = armed

    @property
    def current_token(self) -> Optional[SessionToken]:
        return self._state.current_token

    @property
    def has_pending(self) -> bool:
        return self._state.pending is not None

    @property
    def handshake_count(self) -> int:
        """Number of handshakes started over the store's lifetime."""
        return self._handshakes

    @property
    def state(self) -> SessionSnapshot:
        return SessionSnapshot(
            current_token=self._state.current_token,
            has_pending=self._state.pending is not None,
            refresh_armed=self._state.refresh_armed,
            generation=self._state.generation,
            handshake_count=self._handshakes,
        )

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------
    def _ensure_pending(self) -> asyncio.Task[SessionToken]:
        if self._state.pending is None:
            self._handshakes += 1
            task = asyncio.get_running_loop().create_task(
                self._acquire(self._state.generation)
            )
            task.add_done_callback(_consume_exception)
            self._state.pending = task
        return self._state.pending

    async def _acquire(self, generation: int) -> SessionToken:
        try:
            token = await self._acquirer.acquire()
        except TokenAcquisitionError as e:
            logger.warning(f"Session token acquisition failed: {e}")
            raise
        except Exception as e:
            logger.exception("Session token acquisition raised unexpectedly")
            raise TokenAcquisitionError.transport_failed(e) from e
        finally:
            if generation == self._state.generation:
                self._state.pending = None

        if generation != self._state.generation:
            logger.debug("Discarding token acquired before teardown")
            return token

        self._store(token)
        return token

    def _store(self, token: SessionToken) -> None:
        current = self._state.current_token
        if current is not None and token.expires_at < current.expires_at:
            logger.warning("Ignoring session token older than the cached one")
            return

        self._state.current_token = token
        for listener in list(self._listeners):
            listener(token)


def _consume_exception(task: asyncio.Task[SessionToken]) -> None:
    # Failures are delivered to waiters; a handshake nobody awaited
    # any more must not be reported as "exception was never retrieved".
    if not task.cancelled():
        task.exception()
