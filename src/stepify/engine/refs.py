from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ByName:
    name: str


@dataclass(frozen=True, slots=True)
class ByAbsoluteIndex:
    index: int


@dataclass(frozen=True, slots=True)
class ByRelativeOffset:
    """An offset from the index the task is currently executing."""

    offset: int

    def absolute(self, current_index: int) -> ByAbsoluteIndex:
        return ByAbsoluteIndex(current_index + self.offset)


StepRef = ByName | ByAbsoluteIndex | ByRelativeOffset


def to_step_ref(value: object) -> StepRef | None:
    """Coerce a raw jump target into a :data:`StepRef`.

    ``str`` is a name, a non-negative ``int`` an absolute index and a negative
    ``int`` an offset relative to the current step. Anything else (``bool``
    included) resolves to ``None``.
    """

    if isinstance(value, ByName | ByAbsoluteIndex | ByRelativeOffset):
        return value
    if isinstance(value, str):
        return ByName(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return ByAbsoluteIndex(value) if value >= 0 else ByRelativeOffset(value)
    return None
