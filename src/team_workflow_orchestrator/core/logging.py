"""Structured logging.

Log lines are JSON objects. Session identifiers passed via ``extra=`` are lifted
to the top level so a single session can be followed across the supervisor,
the master orchestrator and the progress publisher.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO, Any

CORRELATION_FIELDS: tuple[str, ...] = ("session_id", "master_session_id")

NOISY_LOGGERS: tuple[str, ...] = ("openai", "httpx", "httpcore", "uvicorn.access")

_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        extras = record_extras(record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CORRELATION_FIELDS:
            if field in extras:
                payload[field] = extras.pop(field)
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    level: str, *, json_format: bool = True, stream: IO[str] | None = None
) -> logging.Handler:
    """Install a single root handler and return it.

    Re-configuring replaces the previous root handlers.
    """

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        JsonFormatter() if json_format else logging.Formatter(_TEXT_FORMAT, "%H:%M:%S")
    )
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))
    return handler
