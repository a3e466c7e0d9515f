from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Success:
    """A step finished; ``values`` are forwarded to the continuation."""

    values: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class Failure:
    """A step failed; the owning task terminates with ``error``."""

    error: BaseException


Completion = Success | Failure


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    """What a task's completion sink receives once it terminates."""

    task_name: str
    error: BaseException | None = None
    results: tuple[Any, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None
