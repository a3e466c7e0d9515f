"""Unit tests for fan-out/fan-in with Step.parallel."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from stepify.engine import NotCallableError, Step, Task

BranchDone = Callable[..., None]


class Branches:
    """Branch starters that park their completion callbacks for the test."""

    def __init__(self) -> None:
        self.pending: dict[str, BranchDone] = {}
        self.started: list[str] = []

    def starter(self, key: str) -> Callable[[BranchDone], None]:
        def start(branch_done: BranchDone) -> None:
            self.started.append(key)
            self.pending[key] = branch_done

        return start


def _collect(seen: list[tuple[Any, Any]]) -> Callable[..., None]:
    def callback(err: Any, results: Any = None) -> None:
        seen.append((err, results))

    return callback


def _single_step(handler: Callable[[Step], None]) -> Task:
    return Task("parallel", [("fan", handler)]).run()


def test_results_are_index_aligned_not_completion_ordered() -> None:
    branches = Branches()
    seen: list[tuple[Any, Any]] = []

    _single_step(
        lambda step: step.parallel(
            [branches.starter("a"), branches.starter("b"), branches.starter("c")],
            callback=_collect(seen),
        )
    )

    assert branches.started == ["a", "b", "c"]
    branches.pending["b"](None, "rB")
    branches.pending["c"](None, "rC")
    assert seen == []
    branches.pending["a"](None, "rA")

    assert seen == [(None, ["rA", "rB", "rC"])]


def test_first_error_wins_and_later_completions_are_dropped() -> None:
    branches = Branches()
    seen: list[tuple[Any, Any]] = []
    boom = RuntimeError("a failed")

    _single_step(
        lambda step: step.parallel(
            [branches.starter("a"), branches.starter("b")], callback=_collect(seen)
        )
    )

    branches.pending["a"](boom)
    branches.pending["b"](None, "rB")
    branches.pending["b"](RuntimeError("second"))

    assert seen == [(boom, None)]


def test_branches_still_run_after_an_error() -> None:
    side_effects: list[str] = []
    seen: list[tuple[Any, Any]] = []
    boom = RuntimeError("early")

    def failing(branch_done: BranchDone) -> None:
        branch_done(boom)

    def slow(branch_done: BranchDone) -> None:
        side_effects.append("slow ran")
        branch_done(None, "late")

    _single_step(lambda step: step.parallel([failing, slow], callback=_collect(seen)))

    assert side_effects == ["slow ran"]
    assert seen == [(boom, None)]


def test_iterator_shape_applies_function_to_each_value() -> None:
    seen: list[tuple[Any, Any]] = []
    parked: list[tuple[int, BranchDone]] = []

    def square(value: int, branch_done: BranchDone) -> None:
        parked.append((value, branch_done))

    _single_step(lambda step: step.parallel([1, 2, 3], square, _collect(seen)))

    for value, branch_done in reversed(parked):
        branch_done(None, value * value)

    assert seen == [(None, [1, 4, 9])]


def test_default_callback_forwards_results_to_next_step() -> None:
    branches = Branches()
    outcomes: list[tuple[Any, list[Any]]] = []

    def fan(step: Step) -> None:
        step.parallel([branches.starter("x"), branches.starter("y")])

    def collect(step: Step, results: list[str]) -> None:
        step.fulfill(*results)
        step.next()

    task = Task("default", [("fan", fan), ("collect", collect)])
    task.on_done(lambda err, results: outcomes.append((err, results))).run()

    branches.pending["y"](None, "Y")
    branches.pending["x"](None, "X")

    assert outcomes == [(None, ["X", "Y"])]


def test_default_callback_ends_task_on_error() -> None:
    branches = Branches()
    outcomes: list[tuple[Any, list[Any]]] = []
    boom = OSError("read failed")
    reached: list[str] = []

    task = Task(
        "default-error",
        [
            ("fan", lambda step: step.parallel([branches.starter("x"), branches.starter("y")])),
            ("after", lambda step: reached.append("after")),
        ],
    )
    task.on_done(lambda err, results: outcomes.append((err, results))).run()

    branches.pending["x"](boom)
    branches.pending["y"](None, "Y")

    assert reached == []
    assert outcomes == [(boom, [])]


def test_duplicate_branch_completion_is_ignored() -> None:
    branches = Branches()
    seen: list[tuple[Any, Any]] = []

    _single_step(
        lambda step: step.parallel(
            [branches.starter("a"), branches.starter("b")], callback=_collect(seen)
        )
    )

    branches.pending["a"](None, "first")
    branches.pending["a"](None, "second")
    assert seen == []
    branches.pending["b"](None, "rB")

    assert seen == [(None, ["first", "rB"])]


def test_empty_items_complete_immediately() -> None:
    seen: list[tuple[Any, Any]] = []

    _single_step(lambda step: step.parallel([], callback=_collect(seen)))

    assert seen == [(None, [])]


def test_non_callable_item_is_rejected_before_dispatch() -> None:
    started: list[str] = []

    def ok(branch_done: BranchDone) -> None:
        started.append("ok")

    with pytest.raises(NotCallableError):
        _single_step(lambda step: step.parallel([ok, "not callable", ok]))

    assert started == []


def test_non_callable_iterator_is_rejected() -> None:
    with pytest.raises(NotCallableError):
        _single_step(lambda step: step.parallel([1, 2], "nope"))  # type: ignore[arg-type]
