"""Chainable declaration surface for tasks and their steps.

    wf = (
        Workflow()
        .task("build")
        .step("load", load)
        .step("process", process, 2)
        .step(save)
        .task("report")
        .step(render)
        .on_finish(lambda err, results: print(err, results))
    )
    wf.run()

Tasks run one after another. A task starts once the previous one terminated
without error; the first failing task stops the workflow.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from stepify.config import StepifySettings
from stepify.engine.errors import (
    DuplicateStepError,
    NotCallableError,
    StepifyError,
    TaskFailedError,
    TaskStateError,
)
from stepify.engine.task import StepHandler, Task

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[Any, str], Any]
FinishHandler = Callable[[Any, dict[str, list[Any]]], Any]


@dataclass(frozen=True, slots=True)
class WorkflowResult:
    error: Any = None
    failed_task: str | None = None
    results: dict[str, list[Any]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"ok": self.ok, "results": self.results}
        if self.error is not None:
            out["error"] = repr(self.error)
            out["failed_task"] = self.failed_task
        return out


@dataclass
class _TaskDeclaration:
    name: str
    steps: list[tuple[str, StepHandler, tuple[Any, ...]]] = field(default_factory=list)

    def step_names(self) -> set[str]:
        return {name for name, _, _ in self.steps}


def _default_step_name(handler: StepHandler, index: int) -> str:
    name = getattr(handler, "__name__", "")
    if not name or name.startswith("<"):
        return f"step{index}"
    return name


class Workflow:
    """Declare tasks step by step, then run them in order."""

    def __init__(
        self, *, debug: bool | None = None, settings: StepifySettings | None = None
    ) -> None:
        if debug is None:
            debug = settings.debug if settings is not None else False
        self.debug = debug

        self._declarations: list[_TaskDeclaration] = []
        self._error_handlers: list[ErrorHandler] = []
        self._finish_handlers: list[FinishHandler] = []
        self._tasks: list[Task] = []
        self._results: dict[str, list[Any]] = {}
        self._started = False
        self.result: WorkflowResult | None = None

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    def task(self, name: str | None = None) -> Workflow:
        if name is None:
            name = f"task{len(self._declarations)}"
        if any(d.name == name for d in self._declarations):
            raise DuplicateStepError(f"Workflow declares task {name!r} twice")
        self._declarations.append(_TaskDeclaration(name=name))
        return self

    def step(self, name_or_handler: str | StepHandler, *args: Any) -> Workflow:
        """Append a step to the most recently declared task.

        ``step("name", handler, *known_args)`` or ``step(handler, *known_args)``.
        Known arguments are passed to the handler ahead of runtime arguments.
        """

        if not self._declarations:
            self.task()
        declaration = self._declarations[-1]
        index = len(declaration.steps)

        if isinstance(name_or_handler, str):
            if not args or not callable(args[0]):
                raise NotCallableError(
                    f"Step {name_or_handler!r} of task {declaration.name!r} needs a handler"
                )
            name, handler, known_args = name_or_handler, args[0], args[1:]
            if name in declaration.step_names():
                raise DuplicateStepError(
                    f"Task {declaration.name!r} declares step {name!r} twice"
                )
        elif callable(name_or_handler):
            handler, known_args = name_or_handler, args
            taken = declaration.step_names()
            name = _default_step_name(handler, index)
            if name in taken:
                name = f"step{index}"
            suffix = 1
            while name in taken:
                name = f"step{index}_{suffix}"
                suffix += 1
        else:
            raise NotCallableError(f"Step handler {name_or_handler!r} is not callable")

        declaration.steps.append((name, handler, tuple(known_args)))
        return self

    def on_error(self, handler: ErrorHandler) -> Workflow:
        self._error_handlers.append(handler)
        return self

    def on_finish(self, handler: FinishHandler) -> Workflow:
        self._finish_handlers.append(handler)
        return self

    def run(self, *args: Any) -> Workflow:
        """Build every declared task and start the first one.

        ``args`` are passed to the first step of the first task.
        """

        if self._started:
            raise TaskStateError("Workflow has already been started")
        self._started = True

        self._tasks = [
            Task(d.name, d.steps, debug=self.debug) for d in self._declarations
        ]
        logger.info("Starting workflow", extra={"tasks": [t.name for t in self._tasks]})
        self._start(0, args)
        return self

    async def run_async(self, *args: Any) -> WorkflowResult:
        """Run inside the current event loop and wait for the workflow to finish.

        Steps may complete from loop callbacks or from worker threads. A
        declaration error raised from a loop callback is re-raised here.
        """

        loop = asyncio.get_running_loop()
        future: asyncio.Future[WorkflowResult] = loop.create_future()
        previous_handler = loop.get_exception_handler()

        def _settle() -> None:
            if not future.done() and self.result is not None:
                future.set_result(self.result)

        def _on_loop_error(
            loop: asyncio.AbstractEventLoop, context: dict[str, Any]
        ) -> None:
            exc = context.get("exception")
            if isinstance(exc, StepifyError) and not future.done():
                future.set_exception(exc)
                return
            if previous_handler is not None:
                previous_handler(loop, context)
            else:
                loop.default_exception_handler(context)

        self._finish_handlers.append(lambda _err, _results: loop.call_soon_threadsafe(_settle))
        loop.set_exception_handler(_on_loop_error)
        try:
            self.run(*args)
            return await future
        finally:
            loop.set_exception_handler(previous_handler)

    def _start(self, position: int, args: tuple[Any, ...] = ()) -> None:
        if position >= len(self._tasks):
            self._finish(None, None)
            return
        task = self._tasks[position]
        task.on_done(partial(self._task_done, position))
        task.run(*args)

    def _task_done(self, position: int, err: Any, results: list[Any]) -> None:
        task = self._tasks[position]
        self._results[task.name] = results
        if err:
            self._finish(err, task.name)
            return
        self._start(position + 1)

    def _finish(self, err: Any, failed_task: str | None) -> None:
        self.result = WorkflowResult(
            error=err, failed_task=failed_task, results=dict(self._results)
        )

        if err:
            logger.error(
                "Workflow failed", extra={"task": failed_task, "error": repr(err)}
            )
            if not self._error_handlers and not self._finish_handlers:
                cause = err if isinstance(err, BaseException) else None
                raise TaskFailedError(err, task_name=failed_task or "") from cause
            for error_handler in self._error_handlers:
                error_handler(err, failed_task or "")
        else:
            logger.info("Workflow completed", extra={"tasks": list(self._results)})

        for finish_handler in self._finish_handlers:
            finish_handler(err, dict(self._results))
