from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

ROOT_LOGGER = "sessionlens"

# extra= keys copied onto the JSON line when present on the record
EXTRA_KEYS: tuple[str, ...] = (
    "project_id",
    "session_id",
    "source",
    "feature",
    "event_count",
    "skipped",
    "reason",
    "num_sessions",
    "num_users",
    "duration_ms",
    "error",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """
    Module loggers propagate to one "sessionlens" logger that owns the handler.
    Lines go to stderr; stdout is reserved for command output.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:  # avoid double handlers in tests
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.setLevel(logging.INFO)
        root.propagate = False
    if level is not None:
        root.setLevel(level.upper())
    return logging.getLogger(name)
