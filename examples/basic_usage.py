#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates the step engine driven by an asyncio event loop:

* steps that finish from timer callbacks
* fan-out/fan-in with ``parallel``
* shared task variables and fulfilled results

Run directly, or through the CLI from the repository root:

    python -m stepify.cli run examples.basic_usage:build_workflow 3
"""

from __future__ import annotations

import asyncio
import json

from stepify import Step, Workflow
from stepify.config import StepifySettings


def _later(delay: float, callback, *args) -> None:  # type: ignore[no-untyped-def]
    asyncio.get_running_loop().call_later(delay, callback, *args)


def load(step: Step, count: str = "3") -> None:
    step.vars("count", int(count))
    _later(0.01, step.wrap(), None)


def fetch(step: Step) -> None:
    def fetch_one(n: int, branch_done) -> None:  # type: ignore[no-untyped-def]
        _later(0.01 * (3 - n % 3), branch_done, None, n * n)

    step.parallel(range(step.vars("count")), fetch_one)


def save(step: Step, squares: list[int]) -> None:
    step.fulfill(*squares)
    step.vars("total", sum(squares))
    step.next()


def report(step: Step) -> None:
    step.fulfill({"note": "squares computed"})
    step.end()


def build_workflow(settings: StepifySettings | None = None) -> Workflow:
    return (
        Workflow(settings=settings)
        .task("squares")
        .step(load)
        .step(fetch)
        .step(save)
        .task("report")
        .step(report)
    )


def main() -> int:
    settings = StepifySettings()
    settings.setup_logging()

    result = asyncio.run(build_workflow(settings).run_async("4"))
    print(json.dumps(result.to_json(), indent=2))
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
