"""The task: an ordered step table plus the state its steps share."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import DuplicateStepError, NotCallableError, StepIndexError, TaskStateError
from .outcome import TaskOutcome
from .refs import ByAbsoluteIndex, ByName, StepRef, to_step_ref
from .step import Step

logger = logging.getLogger(__name__)

StepHandler = Callable[..., Any]
DoneListener = Callable[[Any, list[Any]], None]


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class StepDescriptor:
    index: int
    name: str
    handler: StepHandler
    known_args: tuple[Any, ...] = ()


class Task:
    """Own and advance an ordered sequence of steps.

    Handlers are called as ``handler(step, *known_args, *runtime_args)`` and
    must finish by calling one of the step's control methods, possibly from a
    later callback. The task terminates exactly once, through :meth:`emit_done`;
    completion listeners registered with :meth:`on_done` receive
    ``(err, results)``.

    Shared state lives on the instance and is guarded by a re-entrant lock so
    steps may complete from worker threads as well as from an event loop.
    """

    def __init__(
        self,
        name: str,
        steps: Iterable[tuple[str, StepHandler] | tuple[str, StepHandler, Sequence[Any]]],
        *,
        debug: bool = False,
    ) -> None:
        self.name = name
        self.debug = debug
        self.steps: tuple[StepDescriptor, ...] = _build_descriptors(name, steps)
        self.current_index = -1
        self.variables: dict[str, Any] = {}
        self.results: list[Any] = []
        self.state = TaskState.PENDING

        self._lock = threading.RLock()
        self._listeners: list[DoneListener] = []
        self._outcome: TaskOutcome | None = None
        self._by_name = {d.name: d for d in self.steps}
        self._pending: deque[tuple[int, tuple[Any, ...]]] = deque()
        self._dispatching = False

    def __repr__(self) -> str:
        return (
            f"Task(name={self.name!r}, steps={len(self.steps)}, "
            f"current_index={self.current_index}, state={self.state.value})"
        )

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def finished(self) -> bool:
        return self.state is TaskState.DONE

    @property
    def outcome(self) -> TaskOutcome | None:
        return self._outcome

    def on_done(self, listener: DoneListener) -> Task:
        """Subscribe to the terminal signal.

        Subscribing after termination calls ``listener`` right away.
        """

        with self._lock:
            outcome = self._outcome
            if outcome is None:
                self._listeners.append(listener)
                return self
        listener(outcome.error, list(outcome.results))
        return self

    def resolve_step(self, ref: StepRef | str | int) -> StepDescriptor | None:
        """Resolve a step name or absolute index.

        Relative offsets are resolved by the calling step against
        :attr:`current_index`; passed here they resolve to ``None``.
        """

        resolved = to_step_ref(ref)
        if isinstance(resolved, ByName):
            return self._by_name.get(resolved.name)
        if isinstance(resolved, ByAbsoluteIndex):
            if 0 <= resolved.index < len(self.steps):
                return self.steps[resolved.index]
        return None

    def run(self, *args: Any) -> Task:
        with self._lock:
            if self.state is not TaskState.PENDING:
                raise TaskStateError(f"Task {self.name!r} has already been started")
            self.state = TaskState.RUNNING

        logger.debug("Starting task", extra={"task": self.name, "steps": len(self.steps)})
        if not self.steps:
            self.emit_done(None)
            return self

        self.run_from(0, *args)
        return self

    def run_from(self, index: int, *args: Any) -> None:
        """Move the cursor to ``index`` and run that step's handler.

        A call made while a handler of this task is already running (a step
        calling ``next`` synchronously, say) only queues the transition; the
        outermost call drains the queue, so synchronous chains of any length
        run at constant stack depth.
        """

        if not 0 <= index < len(self.steps):
            raise StepIndexError(index, task_name=self.name, size=len(self.steps))

        with self._lock:
            if self.finished:
                logger.debug(
                    "Ignoring advance on a finished task",
                    extra={"task": self.name, "index": index},
                )
                return
            self.current_index = index
            self._pending.append((index, args))
            if self._dispatching:
                return
            self._dispatching = True

        try:
            while True:
                with self._lock:
                    if self.finished or not self._pending:
                        self._pending.clear()
                        self._dispatching = False
                        return
                    index, args = self._pending.popleft()
                    self.current_index = index

                descriptor = self.steps[index]
                step = Step(self, descriptor)
                descriptor.handler(step, *descriptor.known_args, *args)
        except BaseException:
            with self._lock:
                self._pending.clear()
                self._dispatching = False
            raise

    def emit_fulfillment(self, value: Any) -> None:
        with self._lock:
            self.results.append(value)

    def emit_done(self, err: Any) -> None:
        with self._lock:
            if self._outcome is not None:
                logger.debug(
                    "Ignoring repeated termination",
                    extra={"task": self.name, "error": repr(err)},
                )
                return
            self.state = TaskState.DONE
            self._outcome = TaskOutcome(
                task_name=self.name, error=err or None, results=tuple(self.results)
            )
            listeners, self._listeners = self._listeners, []

        outcome = self._outcome
        if outcome.error is not None:
            logger.info(
                "Task failed", extra={"task": self.name, "error": repr(outcome.error)}
            )
        else:
            logger.info("Task completed", extra={"task": self.name})

        for listener in listeners:
            listener(outcome.error, list(outcome.results))

    def current_step(self) -> StepDescriptor | None:
        if 0 <= self.current_index < len(self.steps):
            return self.steps[self.current_index]
        return None


def _build_descriptors(
    task_name: str,
    steps: Iterable[tuple[str, StepHandler] | tuple[str, StepHandler, Sequence[Any]]],
) -> tuple[StepDescriptor, ...]:
    out: list[StepDescriptor] = []
    seen: set[str] = set()
    for index, entry in enumerate(steps):
        name, handler, *rest = entry
        known_args = tuple(rest[0]) if rest else ()
        if not callable(handler):
            raise NotCallableError(
                f"Handler for step {name!r} of task {task_name!r} is not callable"
            )
        if name in seen:
            raise DuplicateStepError(f"Task {task_name!r} declares step {name!r} twice")
        seen.add(name)
        out.append(StepDescriptor(index=index, name=name, handler=handler, known_args=known_args))
    return tuple(out)
