"""CLI entrypoint: run a workflow declared in an importable module."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import inspect
import json
import logging
import sys
from collections.abc import Callable

from pydantic import ValidationError

from stepify import __version__
from stepify.config import StepifySettings
from stepify.engine.errors import StepifyError
from stepify.workflow import Workflow, WorkflowResult

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stepify",
        description="Run callback-driven step workflows",
    )
    parser.add_argument("--version", action="version", version=f"stepify {__version__}")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override STEPIFY_LOG_LEVEL (e.g. DEBUG, INFO)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Trace step completions, jumps and task ends",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a workflow and print its results as JSON")
    run.add_argument(
        "target",
        help="'module:attribute' naming a Workflow or a factory returning one",
    )
    run.add_argument(
        "args",
        nargs="*",
        help="Arguments passed to the first step of the first task",
    )
    return parser


def load_workflow(target: str, *, settings: StepifySettings) -> Workflow:
    """Import ``module:attribute`` and turn it into a :class:`Workflow`.

    The attribute may be a Workflow instance or a callable. Callables are
    called with ``settings`` when they accept a keyword of that name, and
    with no arguments otherwise.
    """

    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected 'module:attribute', got {target!r}")

    module = importlib.import_module(module_name)
    obj: object = getattr(module, attr)

    if isinstance(obj, Workflow):
        return obj
    if callable(obj):
        factory: Callable[..., object] = obj
        if "settings" in inspect.signature(factory).parameters:
            produced = factory(settings=settings)
        else:
            produced = factory()
        if isinstance(produced, Workflow):
            return produced
    raise TypeError(f"{target!r} is neither a Workflow nor a factory returning one")


def _cmd_run(args: argparse.Namespace, *, settings: StepifySettings) -> int:
    try:
        workflow = load_workflow(args.target, settings=settings)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        logger.error(
            "Could not load workflow", extra={"target": args.target, "error": str(e)}
        )
        print(f"Error: {e}", file=sys.stderr)
        return 2

    workflow.debug = workflow.debug or settings.debug
    result: WorkflowResult = asyncio.run(workflow.run_async(*args.args))
    print(json.dumps(result.to_json(), indent=2, ensure_ascii=False, default=repr))
    return 0 if result.ok else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = StepifySettings()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    overrides: dict[str, object] = {}
    if args.log_level is not None:
        overrides["log_level"] = args.log_level.upper()
    if args.debug is not None:
        overrides["debug"] = args.debug
    if overrides:
        settings = settings.model_copy(update=overrides)

    settings.setup_logging()

    try:
        if args.command == "run":
            return _cmd_run(args, settings=settings)
    except StepifyError as e:
        logger.exception("Workflow declaration error")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
