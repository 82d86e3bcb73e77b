"""Logging configuration for Afkari.

One handler is installed on the root logger. Lines are either
newline-delimited JSON or plain text, and both carry the fields bound through
``log_context``. The CLI points the handler at stderr so command output on
stdout stays machine-readable.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from log_context import bind_fields, log_fields
from time_utils import to_iso

# Third-party loggers that are noisy at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "alembic.runtime.migration")

_handler: logging.Handler | None = None


class FieldsFilter(logging.Filter):
    """Attach the bound log fields to each record as ``record.fields``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.fields = log_fields()
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": to_iso(datetime.fromtimestamp(record.created, timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **getattr(record, "fields", {}),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Human-readable lines with bound fields appended in brackets."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "fields", None)
        if not fields:
            return line
        return line + " [" + " ".join(f"{k}={v}" for k, v in sorted(fields.items())) + "]"


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
    service: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Install (or replace) the Afkari handler on the root logger.

    Only the handler installed by a previous call is removed; handlers added
    by anything else are left alone. Returns the new handler.
    """
    global _handler
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    level_name = level.upper()
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(FieldsFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())
    root.addHandler(handler)
    root.setLevel(level_name)
    _handler = handler

    quiet_level = logging.NOTSET if level_name == "DEBUG" else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    if service:
        bind_fields(service=service)
    return handler
