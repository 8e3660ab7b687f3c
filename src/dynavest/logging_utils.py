from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import IO, Any

from dynavest.domain.chains import chain_name
from dynavest.logging_context import get_logging_context
from dynavest.security.redaction import redact_data

# logger name -> (env override, level used above DEBUG)
_HTTP_LOGGERS: dict[str, tuple[str, int]] = {
    "httpx": ("HTTPX_LOG_LEVEL", logging.INFO),
    "httpcore": ("HTTPCORE_LOG_LEVEL", logging.WARNING),
}


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line.

    Bound context fields come first, per-call ``extra={"extra": {...}}`` fields
    override them, and the whole payload passes through secret redaction.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(get_logging_context())
        extras = getattr(record, "extra", None)
        if isinstance(extras, dict):
            payload.update(extras)

        chain_id = payload.get("chain_id")
        if chain_id is not None and str(chain_id).isdigit():
            payload.setdefault("chain", chain_name(int(chain_id)))

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload["error_type"] = exc_type.__name__ if exc_type else "Exception"
            payload["error_message"] = "" if exc_value is None else str(exc_value)
            payload["traceback"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["traceback"] = record.exc_text

        return json.dumps(redact_data(payload), default=str)


def _parse_level(value: str | int | None, default: int) -> int:
    if isinstance(value, int):
        return value
    if value is None or not str(value).strip():
        return default
    resolved = logging.getLevelName(str(value).strip().upper())
    return resolved if isinstance(resolved, int) else default


def setup_logging(level: str | int | None = None, *, stream: IO[str] | None = None) -> None:
    """Install the JSON handler on the root logger.

    ``level`` falls back to ``LOG_LEVEL``. HTTP client loggers follow DEBUG
    when the root is at DEBUG and stay quieter otherwise unless overridden.
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)

    root_level = _parse_level(level if level is not None else os.getenv("LOG_LEVEL"), logging.INFO)
    root.setLevel(root_level)

    for name, (env_name, quiet_level) in _HTTP_LOGGERS.items():
        default = logging.DEBUG if root_level <= logging.DEBUG else quiet_level
        logging.getLogger(name).setLevel(_parse_level(os.getenv(env_name), default))
