"""
cachestack — Structured Logging

JSON log formatting for the cachestack logger tree. Modules log through
logging.getLogger(__name__) and attach context with extra={...}; this
formatter carries those extra fields into the JSON output.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any, TextIO

# Attributes every LogRecord has; anything else came from extra={...}
_RESERVED_ATTRS = frozenset(
    (
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "name",
        "message",
        "taskName",
    )
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in log_data and key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str | int = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """
    Install the JSON formatter on the cachestack logger.

    Args:
        level: Log level name or number
        stream: Destination stream (defaults to stderr)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("cachestack")

    logger.handlers.clear()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)

    return logger
