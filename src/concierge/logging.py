"""
Concierge Structured Logging

Provides a configured logger for the reply engine using stdlib logging
with structured context.

Usage:
    from concierge.logging import get_logger

    logger = get_logger("concierge.engine")
    logger.info("Reply drafted", extra={"message_id": "msg-123", "confidence": 0.8})

For production, configure with JSON output:
    from concierge.logging import configure_logging
    configure_logging(json_output=True, level="INFO")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

_CONTEXT_KEYS = (
    "message_id", "thread_id", "tool_name", "approval_id", "risk_level",
    "confidence", "provider", "duration_ms", "client_id",
)


class ConciergeFormatter(logging.Formatter):
    """Structured log formatter.

    Outputs either human-readable or JSON format depending on configuration.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self._json_output:
            return json.dumps(log_data, default=str)

        extra_keys = {k: v for k, v in log_data.items()
                      if k not in ("timestamp", "level", "logger", "message", "exception")}
        extra_str = ""
        if extra_keys:
            extra_str = " | " + " ".join(f"{k}={v}" for k, v in extra_keys.items())

        line = (
            f"[{log_data['timestamp']}] {record.levelname:8s} "
            f"{record.name}: {record.getMessage()}{extra_str}"
        )
        if "exception" in log_data:
            line += "\n" + log_data["exception"]
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """Configure Concierge logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output JSON format (for log shipping).
    """
    root_logger = logging.getLogger("concierge")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ConciergeFormatter(json_output=json_output))
    root_logger.addHandler(handler)

    root_logger.propagate = False


def get_logger(name: str = "concierge") -> logging.Logger:
    """Get a Concierge logger instance."""
    return logging.getLogger(name)


configure_logging()
