"""
Session module: token lifecycle.

Components, leaf-first:
- SessionToken: immutable credential value object
- TokenAcquirer: one handshake per call, no retries
- SessionTokenStore: cached token with single-flight acquisition
- RefreshScheduler: proactive renewal ahead of expiry
"""

from tilesession.session.token import SessionToken
from tilesession.session.acquirer import TokenAcquirer
from tilesession.session.store import SessionState, SessionSnapshot, SessionTokenStore
from tilesession.session.scheduler import RefreshScheduler, SchedulerState

__all__ = [
    "SessionToken",
    "TokenAcquirer",
    "SessionState",
    "SessionSnapshot",
    "SessionTokenStore",
    "RefreshScheduler",
    "SchedulerState",
]
