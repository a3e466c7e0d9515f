"""Exception taxonomy for the step engine.

Step-level failures are never raised: they travel through ``Step.end`` to the
task's completion sink. Only programmer errors in a task's declaration are
raised, and they are raised immediately.
"""

from __future__ import annotations


class StepifyError(Exception):
    pass


class DeclarationError(StepifyError, ValueError):
    """A defect in how a task or one of its steps was declared."""


class MissingJumpTargetError(DeclarationError):
    pass


class UnknownStepError(DeclarationError):
    def __init__(self, ref: object, *, task_name: str) -> None:
        super().__init__(f"Task {task_name!r} has no step matching {ref!r}")
        self.ref = ref
        self.task_name = task_name


class StepIndexError(DeclarationError, IndexError):
    def __init__(self, index: int, *, task_name: str, size: int) -> None:
        super().__init__(
            f"Step index {index} is out of range for task {task_name!r} ({size} steps)"
        )
        self.index = index
        self.task_name = task_name


class DuplicateStepError(DeclarationError):
    pass


class NotCallableError(DeclarationError, TypeError):
    pass


class TaskStateError(StepifyError, RuntimeError):
    """Raised when a task is asked to start a second time."""


class TaskFailedError(StepifyError):
    """A workflow task failed and nothing was registered to handle it."""

    def __init__(self, error: object, *, task_name: str) -> None:
        super().__init__(f"Task {task_name!r} failed: {error!r}")
        self.error = error
        self.task_name = task_name
