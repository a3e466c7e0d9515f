"""Test configuration and fixtures."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from stepify.logging import JsonFormatter, TextFormatter


class ManualScheduler:
    """Queue callbacks and fire them later, in FIFO order or by hand.

    Stands in for an event loop so tests can control exactly when a step's
    asynchronous work completes.
    """

    def __init__(self) -> None:
        self._queue: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self._queue.append((callback, args))

    def run_once(self) -> None:
        callback, args = self._queue.popleft()
        callback(*args)

    def run_all(self) -> None:
        while self._queue:
            self.run_once()


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Provide a manually driven callback queue."""
    return ManualScheduler()


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run in an empty directory without any STEPIFY_* variables set."""
    for var in ("STEPIFY_LOG_LEVEL", "STEPIFY_LOG_FORMAT", "STEPIFY_DEBUG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Drop handlers installed by configure_logging and restore levels."""
    root = logging.getLogger()
    level = root.level
    stepify_level = logging.getLogger("stepify").level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter | TextFormatter):
            root.removeHandler(handler)
    root.setLevel(level)
    logging.getLogger("stepify").setLevel(stepify_level)
