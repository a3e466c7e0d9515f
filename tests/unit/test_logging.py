"""Unit tests for log formatting."""

from __future__ import annotations

import json
import logging

from stepify.logging import JsonFormatter, TextFormatter, configure_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        "stepify.engine.step", logging.DEBUG, __file__, 1, "Jumping to step", None, None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_carries_extras() -> None:
    payload = json.loads(JsonFormatter().format(_record(task="build", step="load", target="save")))

    assert payload["level"] == "DEBUG"
    assert payload["logger"] == "stepify.engine.step"
    assert payload["message"] == "Jumping to step"
    assert payload["extra"] == {"task": "build", "step": "load", "target": "save"}


def test_json_formatter_without_extras() -> None:
    payload = json.loads(JsonFormatter().format(_record()))

    assert "extra" not in payload


def test_text_formatter_appends_extras() -> None:
    line = TextFormatter().format(_record(task="build"))

    assert "Jumping to step" in line
    assert line.endswith("task=build")


def test_configure_logging_replaces_handlers() -> None:
    configure_logging("INFO", "text")
    configure_logging("ERROR", "json")

    root = logging.getLogger()
    stream_handlers = [h for h in root.handlers if isinstance(h.formatter, JsonFormatter)]
    assert len(stream_handlers) == 1
    assert not any(isinstance(h.formatter, TextFormatter) for h in root.handlers)
    assert root.level == logging.ERROR
    assert logging.getLogger("stepify").level == logging.NOTSET
