"""The handle a step handler uses to report completion and steer its task.

A handler receives a :class:`Step` and returns without a result. It signals
that its asynchronous work is finished by calling ``done``, ``next``, ``jump``
or ``end`` on the step, typically from a callback fired later:

    def fetch(step, url):
        loop.call_later(0.1, step.wrap(), None, f"body of {url}")

    def store(step, body):
        step.fulfill(body)
        step.next()

Once the task has terminated, every control method on its steps is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from .errors import MissingJumpTargetError, NotCallableError, UnknownStepError
from .outcome import Completion, Failure, Success
from .refs import ByRelativeOffset, StepRef, to_step_ref

if TYPE_CHECKING:
    from .task import StepDescriptor, Task

logger = logging.getLogger(__name__)

Continuation = Callable[..., Any]
BranchCallback = Callable[..., None]
ParallelCallback = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class StepCallback:
    """A detached callable that completes ``step`` when invoked.

    Calling it is the same as calling ``step.done`` with the same arguments.
    """

    step: Step

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.step.done(*args, **kwargs)


class Step:
    def __init__(self, task: Task, descriptor: StepDescriptor) -> None:
        self.task = task
        self.name = descriptor.name
        self.index = descriptor.index
        self.handler = descriptor.handler
        self.known_args = descriptor.known_args
        self.debug = task.debug

    def __repr__(self) -> str:
        return f"Step(task={self.task.name!r}, name={self.name!r}, index={self.index})"

    def _trace(self, message: str, **extra: Any) -> None:
        if self.debug:
            logger.debug(message, extra={"task": self.task.name, "step": self.name, **extra})

    def _task_finished(self, action: str) -> bool:
        if not self.task.finished:
            return False
        logger.debug(
            "Ignoring call on a step of a finished task",
            extra={"task": self.task.name, "step": self.name, "action": action},
        )
        return True

    def done(self, err: Any = None, *args: Any, then: Continuation | None = None) -> None:
        """Finish this step, error first.

        A truthy ``err`` ends the task and ``then`` is discarded. Otherwise
        ``then(step, *args)`` runs; it defaults to :meth:`next`.
        """

        if err:
            self.complete(Failure(err))
        else:
            self.complete(Success(args), then=then)

    def complete(self, outcome: Completion, then: Continuation | None = None) -> None:
        if self._task_finished("complete"):
            return
        if isinstance(outcome, Failure):
            self.end(outcome.error)
            return

        self._trace("Step has completed")
        continuation = then if then is not None else Step.next
        continuation(self, *outcome.values)

    def wrap(self) -> StepCallback:
        return StepCallback(self)

    def fulfill(self, *values: Any) -> None:
        if self._task_finished("fulfill"):
            return
        for value in values:
            self.task.emit_fulfillment(value)

    def vars(self, *args: Any) -> Any:
        """Read (``vars(key)``) or write (``vars(key, value)``) a task variable."""

        variables = self.task.variables
        if len(args) == 1:
            with self.task.lock:
                return variables.get(args[0])
        if len(args) == 2:
            key, value = args
            with self.task.lock:
                variables[key] = value
            return value
        return None

    def parallel(
        self,
        items: Sequence[Any],
        iterator: Callable[[Any, BranchCallback], Any] | None = None,
        callback: ParallelCallback | None = None,
    ) -> None:
        """Dispatch every branch at once and collect their results in order.

        Without ``iterator`` each item is a callable invoked as
        ``item(branch_done)``; with one, ``iterator(item, branch_done)`` is
        called per item. Branches report through ``branch_done(err, result)``.

        ``callback`` (default :meth:`done`) fires exactly once: ``callback(err)``
        for the first failing branch, or ``callback(None, results)`` when all
        branches succeeded. Branches still in flight after a failure keep
        running; their completions are dropped.
        """

        items = list(items)
        on_complete = callback if callback is not None else self.done

        if iterator is None:
            for position, item in enumerate(items):
                if not callable(item):
                    raise NotCallableError(
                        f"parallel() item {position} of step {self.name!r} is not callable"
                    )
        elif not callable(iterator):
            raise NotCallableError(f"parallel() iterator of step {self.name!r} is not callable")

        if not items:
            on_complete(None, [])
            return

        results: list[Any] = [None] * len(items)
        reported = [False] * len(items)
        state = {"remaining": len(items), "settled": False}
        lock = self.task.lock

        def branch_done(position: int, err: Any = None, result: Any = None) -> None:
            with lock:
                if state["settled"] or reported[position]:
                    logger.debug(
                        "Dropping late parallel completion",
                        extra={
                            "task": self.task.name,
                            "step": self.name,
                            "branch": position,
                            "error": repr(err) if err else None,
                        },
                    )
                    return
                reported[position] = True
                if not err:
                    results[position] = result
                    state["remaining"] -= 1
                    if state["remaining"]:
                        return
                state["settled"] = True

            if err:
                on_complete(err)
            else:
                on_complete(None, list(results))

        for position, item in enumerate(items):
            if iterator is None:
                item(partial(branch_done, position))
            else:
                iterator(item, partial(branch_done, position))

    def jump(self, ref: StepRef | str | int | None = None, *args: Any) -> None:
        """Continue at another step: by name, absolute index or negative offset."""

        if ref is None:
            raise MissingJumpTargetError(
                f"Step {self.name!r} of task {self.task.name!r} jumped without a target"
            )
        if self._task_finished("jump"):
            return

        task = self.task
        current_index = task.current_index
        resolved = to_step_ref(ref)
        if isinstance(resolved, ByRelativeOffset):
            resolved = resolved.absolute(current_index)
        target = task.resolve_step(resolved) if resolved is not None else None
        if target is None:
            raise UnknownStepError(ref, task_name=task.name)

        if target.index == current_index:
            logger.warning(
                "Ignoring jump to the step already running",
                extra={"task": task.name, "step": self.name, "target": target.name},
            )
            return

        self._trace("Jumping to step", target=target.name)
        task.run_from(target.index, *args)

    def next(self, *args: Any) -> None:
        if self._task_finished("next"):
            return
        task = self.task
        if task.current_index + 1 < len(task.steps):
            self.jump(task.current_index + 1, *args)
        else:
            self.end()

    def end(self, err: Any = None) -> None:
        if self._task_finished("end"):
            return
        self._trace("Task has ended", error=repr(err) if err else None)
        self.task.emit_done(err or None)
