"""
Refresh Scheduler: Proactive Token Renewal

States:
    IDLE       → No timer outstanding (initial, and after disarm)
    ARMED      → One wake-up task outstanding
    REFRESHING → Woke up, acquisition in flight

Transitions:
    IDLE       → ARMED      : arm(token) while attached
    IDLE       → ARMED      : arm_retry() after a failed first acquisition
    ARMED      → REFRESHING : wake-up at expires_at - safety margin
    REFRESHING → ARMED      : new token stored (re-armed for it)
    REFRESHING → ARMED      : acquisition failed (retry timer, backoff)
    REFRESHING → ARMED      : replacement expires within the retry base
                              delay (backoff, counted as a failure)
    any        → IDLE       : disarm()

The wake-up is an owned asyncio.Task. disarm() cancels it and marks the
scheduler detached, after which arm() is a no-op, so no wake-up fires
and no handshake is sent for a torn-down layer.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Callable, Optional

from tilesession.core.config import RefreshConfig
from tilesession.core.errors import TokenAcquisitionError
from tilesession.core.types import Timestamp
from tilesession.reliability.retry import RetryPolicy
from tilesession.session.store import SessionTokenStore
from tilesession.session.token import SessionToken

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Refresh scheduler lifecycle states."""
    IDLE = auto()
    ARMED = auto()
    REFRESHING = auto()


class RefreshScheduler:
    """
    Re-acquires the session token ahead of its expiry.

    Usage:
        scheduler = RefreshScheduler(store, config.refresh)
        store.add_listener(scheduler.arm)

        scheduler.attach()      # layer added to the map
        ...
        scheduler.disarm()      # layer removed
    """

    __slots__ = (
        "_store", "_margin_s", "_policy", "_clock",
        "_handle", "_attached", "_state", "_failures", "_deadline",
        "_immediate",
    )

    def __init__(
        self,
        store: SessionTokenStore,
        config: Optional[RefreshConfig] = None,
        clock: Callable[[], Timestamp] = Timestamp.now,
    ) -> None:
        config = config or RefreshConfig()
        self._store = store
        self._margin_s = config.safety_margin_s
        self._policy = RetryPolicy.for_refresh(config)
        self._clock = clock
        self._handle: Optional[asyncio.Task[None]] = None
        self._attached = False
        self._state = SchedulerState.IDLE
        self._failures = 0
        self._deadline: Optional[Timestamp] = None
        self._immediate = False

    def attach(self) -> None:
        """Allow arming; called when the layer joins a map."""
        self._attached = True
        self._failures = 0
        self._immediate = False

    def arm(self, token: SessionToken) -> None:
        """
        Schedule a refresh at token.expires_at - safety margin.

        A zero or negative delay (short lifetime, clock skew) refreshes
        on the next loop iteration. If the replacement token is again
        inside the margin, later refreshes happen at half its remaining
        lifetime. When that half-life is shorter than the retry base
        delay (including tokens that arrive already expired) the token
        is treated like a failed refresh and backs off. Ignored while
        detached.
        """
        if not self._attached:
            return

        remaining_s = token.seconds_remaining(self._clock())
        delay_s = remaining_s - self._margin_s
        if delay_s > 0:
            self._immediate = False
            self._failures = 0
        elif not self._immediate:
            self._immediate = True
            self._failures = 0
            delay_s = 0.0
            logger.info("Session token is inside the refresh margin, refreshing now")
        elif remaining_s / 2 >= self._policy.base_delay_ms / 1000:
            self._failures = 0
            delay_s = remaining_s / 2
            logger.warning(
                f"Session lifetime is shorter than the {self._margin_s:.0f}s refresh margin, "
                f"refreshing at half-life ({delay_s:.1f}s)"
            )
        else:
            delay_s = self._policy.delay_ms(self._failures) / 1000
            self._failures += 1
            logger.warning(
                f"Session token expires in {remaining_s:.3f}s, "
                f"backing off {delay_s:.1f}s ({self._failures} in a row)"
            )
        self._schedule(delay_s)

    def arm_retry(self, error: TokenAcquisitionError) -> None:
        """Schedule another attempt after a failed acquisition (capped backoff)."""
        if not self._attached:
            return

        delay_ms = self._policy.delay_ms(self._failures)
        self._failures += 1
        logger.warning(
            f"Session acquisition failed ({self._failures} in a row), "
            f"retrying in {delay_ms / 1000:.1f}s: {error}"
        )
        self._schedule(delay_ms / 1000)

    def disarm(self) -> None:
        """Cancel any outstanding wake-up. Idempotent."""
        self._attached = False
        handle, self._handle = self._handle, None
        if handle is not None and not handle.done():
            handle.cancel()
        self._state = SchedulerState.IDLE
        self._deadline = None
        self._store.set_refresh_armed(False)

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def refresh_armed(self) -> bool:
        """True iff attached and a wake-up task is outstanding."""
        return (
            self._attached
            and self._handle is not None
            and not self._handle.done()
        )

    @property
    def next_refresh_at(self) -> Optional[Timestamp]:
        return self._deadline

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------
    def _schedule(self, delay_s: float) -> None:
        previous = self._handle
        if (
            previous is not None
            and not previous.done()
            and previous is not asyncio.current_task()
        ):
            previous.cancel()

        self._deadline = self._clock().plus_seconds(delay_s)
        self._handle = asyncio.get_running_loop().create_task(self._wake(delay_s))
        self._state = SchedulerState.ARMED
        self._store.set_refresh_armed(True)
        logger.debug(f"Session refresh armed in {delay_s:.1f}s")

    async def _wake(self, delay_s: float) -> None:
        if delay_s > 0:
            await asyncio.sleep(delay_s)

        if not self._attached:
            return

        self._state = SchedulerState.REFRESHING
        try:
            token = await self._store.refresh()
        except TokenAcquisitionError as e:
            self.arm_retry(e)
            return

        # The store's listener normally re-arms (cancelling this task);
        # when it did not, the token was not stored and we arm here.
        if self._attached and self._handle is asyncio.current_task():
            self.arm(self._store.current_token or token)
