"""JSON log lines for the watcher.

Organisations are scanned on worker threads, so each line carries the
thread name next to the structured fields the scanner and run tracker
attach through ``extra=``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

STRUCTURED_FIELDS = ("watcher", "run_id", "org", "page", "records", "status", "duration_s")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        payload.update(
            (name, getattr(record, name))
            for name in STRUCTURED_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO") -> None:
    """Route the ``watcher`` logger tree to stderr as JSON.

    Safe to call more than once; earlier handlers are replaced. Unknown
    level names fall back to INFO.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    watcher_logger = logging.getLogger("watcher")
    watcher_logger.handlers.clear()
    watcher_logger.addHandler(handler)
    watcher_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    watcher_logger.propagate = False
