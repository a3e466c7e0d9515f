"""Logging configuration for stepify.

Uses standard library logging. Records are rendered as JSON by default so the
``task``/``step`` fields attached by the engine stay machine-readable.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, Literal

LOGGER_NAME = "stepify"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_RESERVED_LOG_RECORD_ATTRS: set[str] = set(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def _record_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_LOG_RECORD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = _record_extra(record)
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=repr)


class TextFormatter(logging.Formatter):
    """Plain text with extras appended as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        line = super().format(record)
        extra = _record_extra(record)
        if extra:
            line += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        return line


def configure_logging(
    level: str, fmt: Literal["json", "text"] = "json", *, debug: bool = False
) -> None:
    """Configure root logging; ``debug`` lowers the stepify logger to DEBUG."""

    root = logging.getLogger()

    # Remove any existing handlers to avoid duplicate logs when re-configuring.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else TextFormatter())

    root.addHandler(handler)
    root.setLevel(level.upper())

    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if debug else logging.NOTSET)
