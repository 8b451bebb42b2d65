"""
Observability module: structured logging.
"""

from tilesession.observability.logging import (
    JsonFormatter,
    LogLevel,
    RedactingFilter,
    StructuredLogger,
    redact,
    setup_logging,
)

__all__ = [
    "JsonFormatter",
    "LogLevel",
    "RedactingFilter",
    "StructuredLogger",
    "redact",
    "setup_logging",
]
