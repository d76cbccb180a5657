"""
kvcache — Logging Setup

Structured JSON logging for the `kvcache` logger hierarchy. Library modules
only call logging.getLogger(__name__); applications and scripts call
configure_logging() once at startup.
"""

import json
import logging
from datetime import UTC, datetime

from .config import LogLevel

# LogRecord attributes that are not user-supplied `extra` fields
_RESERVED_ATTRS = frozenset(
    {
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
        "taskName",
    }
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add any extra fields passed via extra={...}
        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str | LogLevel = LogLevel.INFO, json_format: bool = True) -> logging.Logger:
    """
    Install a stream handler on the `kvcache` logger.

    Args:
        level: Log level name
        json_format: Emit JSON lines instead of plain text

    Returns:
        The configured `kvcache` logger
    """
    logger = logging.getLogger("kvcache")

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(LogLevel(level).value)

    return logger
