"""Logging setup: plain text for terminals, single-line JSON for log shippers."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Keys passed via ``extra=`` that are worth keeping in JSON output.
CONTEXT_FIELDS = ("wait_resource", "resource_kind", "session_id", "database_name", "elapsed_ms")


class JsonFormatter(logging.Formatter):
    """Formats log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Configure the root logger.

    Args:
        level: Log level name. Defaults to the DETECTIVE_LOG_LEVEL env var, then INFO.
        json_output: Use JSON lines. If None, reads DETECTIVE_LOG_FORMAT (``json`` or ``text``).
    """
    if level is None:
        level = os.environ.get("DETECTIVE_LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("DETECTIVE_LOG_FORMAT", "text").lower() == "json"

    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(handler)

    # access logs and the test client are noisy at DEBUG
    for name in ("uvicorn.access", "httpx"):
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))
