"""Callback-driven step engine.

A :class:`Task` runs its steps one at a time; each handler receives a
:class:`Step` and decides, by explicit call, when and where execution
continues.
"""

from .errors import (
    DeclarationError,
    DuplicateStepError,
    MissingJumpTargetError,
    NotCallableError,
    StepifyError,
    StepIndexError,
    TaskFailedError,
    TaskStateError,
    UnknownStepError,
)
from .outcome import Completion, Failure, Success, TaskOutcome
from .refs import ByAbsoluteIndex, ByName, ByRelativeOffset, StepRef, to_step_ref
from .step import Step, StepCallback
from .task import StepDescriptor, Task, TaskState

__all__ = [
    "ByAbsoluteIndex",
    "ByName",
    "ByRelativeOffset",
    "Completion",
    "DeclarationError",
    "DuplicateStepError",
    "Failure",
    "MissingJumpTargetError",
    "NotCallableError",
    "Step",
    "StepCallback",
    "StepDescriptor",
    "StepIndexError",
    "StepRef",
    "StepifyError",
    "Success",
    "Task",
    "TaskFailedError",
    "TaskOutcome",
    "TaskState",
    "TaskStateError",
    "UnknownStepError",
    "to_step_ref",
]
