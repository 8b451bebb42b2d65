"""
Structured Logging: JSON Lines with Layer Context

Provides:
- JSON-formatted log output
- Layer/tile context fields injected from a ContextVar
- Redaction of API keys and session tokens in rendered messages

Components log through logging.getLogger(__name__); this module only
shapes how those records are rendered.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Optional, TextIO


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def parse(cls, name: str) -> LogLevel:
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown log level: {name}") from None


# Fields set by StructuredLogger.context(), visible to every logger
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# Promoted to top-level keys of each JSON line
_CORRELATION_FIELDS = ("layer_id", "tile")

_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_SECRET_PARAM = re.compile(r"\b(key|session)=[^&\s\"']+")


def redact(text: str) -> str:
    """Mask `key=` and `session=` query values."""
    return _SECRET_PARAM.sub(r"\1=***", text)


@dataclass
class LogRecord:
    """One rendered log line."""
    timestamp: str
    level: str
    message: str
    logger_name: str
    layer_id: Optional[str] = None
    tile: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        data: dict[str, Any] = {
            "@timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "logger": self.logger_name,
        }
        if self.layer_id is not None:
            data["layer_id"] = self.layer_id
        if self.tile is not None:
            data["tile"] = self.tile
        data.update(self.extra)
        return json.dumps(data, default=str)


class JsonFormatter(logging.Formatter):
    """JSON formatter merging context fields and record extras."""

    def format(self, record: logging.LogRecord) -> str:
        extra = dict(_log_context.get())
        extra.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        )

        if record.exc_info:
            extra["exception"] = self.formatException(record.exc_info)

        correlation = {name: extra.pop(name, None) for name in _CORRELATION_FIELDS}

        return LogRecord(
            timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            level=record.levelname,
            message=redact(record.getMessage()),
            logger_name=record.name,
            extra=extra,
            **correlation,
        ).to_json()


class RedactingFilter(logging.Filter):
    """Rewrites record messages so credentials never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class StructuredLogger:
    """
    Logger taking keyword fields.

    Usage:
        logger = StructuredLogger(__name__)

        with StructuredLogger.context(layer_id="a1b2"):
            logger.info("Tile layer attached", zoom=5)
    """

    __slots__ = ("_logger", "_default_extra")

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)
        self._default_extra: dict[str, Any] = {}

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.ERROR, message, **kwargs)

    def _log(self, level: LogLevel, message: str, **kwargs: Any) -> None:
        self._logger.log(level.value, message, extra={**self._default_extra, **kwargs})

    def with_extra(self, **kwargs: Any) -> StructuredLogger:
        """Child logger carrying additional default fields."""
        child = StructuredLogger(self._logger.name)
        child._default_extra = {**self._default_extra, **kwargs}
        return child

    @staticmethod
    def context(**kwargs: Any) -> _LogContext:
        """Fields added to every record logged inside the block."""
        return _LogContext(kwargs)


class _LogContext:
    __slots__ = ("_fields", "_token")

    def __init__(self, fields: dict[str, Any]) -> None:
        self._fields = fields
        self._token = None

    def __enter__(self) -> _LogContext:
        self._token = _log_context.set({**_log_context.get(), **self._fields})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token:
            _log_context.reset(self._token)


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Minimum log level
        json_output: JSON lines instead of the plain text layout
        stream: Output stream (default: stderr)
    """
    root = logging.getLogger()
    root.setLevel(level.value)
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level.value)
    handler.addFilter(RedactingFilter())

    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        ))

    root.addHandler(handler)

    # httpx logs every request URL at INFO, key and token included
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
