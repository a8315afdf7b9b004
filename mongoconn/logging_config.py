"""Single-line JSON logging for the connection manager process."""

from __future__ import annotations

import json
import logging
import os


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialize the log record to a JSON string."""
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach the JSON handler to the root logger.

    Leaves existing handlers alone so an embedding service keeps its
    own logging setup.

    Args:
        level: Log level name; defaults to LOG_LEVEL or INFO.

    Returns:
        The root logger.
    """
    root = logging.getLogger()
    root.setLevel((level or os.environ.get("LOG_LEVEL") or "INFO").upper())

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    return root
