"""
Reliability module: retry timing and backoff.
"""

from tilesession.reliability.retry import RetryPolicy, calculate_backoff, retry_with_backoff

__all__ = [
    "RetryPolicy",
    "calculate_backoff",
    "retry_with_backoff",
]
