"""Structured logging configuration for Homeboard."""

from __future__ import annotations

import logging
import sys

from homeboard.utils.time import utc_now

# Extra attributes sources attach to their log records.
_CONTEXT_KEYS = ("source", "attempt", "origin", "latency_ms", "field")


class KeyValueFormatter(logging.Formatter):
    """Formats log records as a level/timestamp/message line plus key=value context."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in _CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        parts = [f"[{log_entry['level']:<7}]", log_entry["timestamp"], log_entry["logger"], log_entry["message"]]
        for key in _CONTEXT_KEYS:
            if key in log_entry:
                parts.append(f"{key}={log_entry[key]}")

        if "exception" in log_entry:
            parts.append(f"\n{log_entry['exception']}")

        return " ".join(parts)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application."""
    root_logger = logging.getLogger()

    # Avoid adding handlers multiple times
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(KeyValueFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
