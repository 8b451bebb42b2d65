"""
Retry Policy: Exponential Backoff with Jitter

Implements the retry timing used around the session handshake:
- Exponential backoff: base × 2^n, capped
- Full jitter: random(0, backoff) to prevent thundering herd
- Refresh failures retry until the layer is detached
- One-shot callers (CLI) get a bounded number of attempts
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Type, TypeVar

from tilesession.core.config import RefreshConfig
from tilesession.core.types import Result, Ok, Err

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration."""

    max_retries: Optional[int] = 3  # None = unbounded
    base_delay_ms: int = 1000
    max_delay_ms: int = 60_000
    exponential_base: float = 2.0
    jitter: bool = True  # Full jitter
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,)

    @classmethod
    def default(cls) -> RetryPolicy:
        return cls()

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        return cls(max_retries=0)

    @classmethod
    def for_refresh(cls, config: RefreshConfig) -> RetryPolicy:
        """Unbounded capped backoff used after a failed proactive refresh."""
        return cls(
            max_retries=None,
            base_delay_ms=config.retry_base_ms,
            max_delay_ms=config.retry_max_ms,
            exponential_base=config.retry_exponential_base,
            jitter=config.retry_jitter,
        )

    def delay_ms(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-based)."""
        return calculate_backoff(
            attempt=attempt,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
        )

    def allows(self, attempt: int) -> bool:
        return self.max_retries is None or attempt < self.max_retries


def calculate_backoff(
    attempt: int,
    base_delay_ms: int,
    max_delay_ms: int,
    exponential_base: float,
    jitter: bool,
) -> float:
    """
    Calculate backoff delay with optional jitter.

    Full jitter: random(0, min(cap, base * 2^attempt))
    """
    # Exponent is clamped so long failure streaks cannot overflow
    delay = min(max_delay_ms, base_delay_ms * (exponential_base ** min(attempt, 32)))

    if jitter:
        delay = random.uniform(0, delay)

    return delay


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
) -> Result[T, Exception]:
    """
    Execute async function with retry and exponential backoff.

    Args:
        func: Async function to execute
        policy: Retry configuration (default if None)

    Returns:
        Ok with result or Err carrying the last exception
    """
    if policy is None:
        policy = RetryPolicy.default()

    attempt = 0
    while True:
        try:
            return Ok(await func())
        except policy.retryable_exceptions as e:
            if not policy.allows(attempt):
                return Err(e)
            delay = policy.delay_ms(attempt)
            attempt += 1
            logger.debug(f"Attempt {attempt} failed: {e}; retrying in {delay:.0f}ms")
            await asyncio.sleep(delay / 1000)
