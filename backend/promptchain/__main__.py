"""Command-line entrypoint.

Usage:
  python -m promptchain plan flows/story_chain.json
  python -m promptchain run flows/story_chain.json
  python -m promptchain run flows/story_chain.json --json     (one JSON line per node)
  python -m promptchain serve --port 8000

Provider keys are read from the settings file (SETTINGS_PATH) or from
PROMPTCHAIN_SECRET_<PROVIDER> environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from promptchain.config import settings
from promptchain.graph.ir import FlowGraph, GenerationResult
from promptchain.graph.parser import load_graph
from promptchain.graph.validator import GraphValidationError
from promptchain.runtime.planner import CycleDetectedError, plan_graph
from promptchain.runtime.state import RunStatus
from promptchain.utils.logger import setup_logger

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_INVALID_FLOW = 2
EXIT_REFUSED = 3


def _read_flow(path: str) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _load_flow(path: str) -> FlowGraph | None:
    """Read and validate a flow file; report problems on stderr."""
    try:
        return load_graph(_read_flow(path))
    except OSError as exc:
        print(f"cannot read flow file: {exc}", file=sys.stderr)
    except ValueError as exc:
        # JSONDecodeError and UnicodeDecodeError
        print(f"flow file is not valid JSON: {exc}", file=sys.stderr)
    except GraphValidationError as exc:
        for err in exc.errors:
            print(f"invalid flow: {err}", file=sys.stderr)
    return None


def _cmd_plan(args: argparse.Namespace) -> int:
    graph = _load_flow(args.flow)
    if graph is None:
        return EXIT_INVALID_FLOW
    try:
        order = plan_graph(graph)
    except CycleDetectedError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INVALID_FLOW
    print("\n".join(order))
    return EXIT_OK


async def _run_flow(args: argparse.Namespace) -> int:
    from promptchain.main import build_flow_service

    graph = _load_flow(args.flow)
    if graph is None:
        return EXIT_INVALID_FLOW

    service = build_flow_service(settings)
    orchestrator = service.orchestrator

    def print_result(node_id: str, result: GenerationResult) -> None:
        if args.json:
            print(json.dumps({"node_id": node_id, **result.to_dict()}))
        else:
            marker = "!" if result.error else "-"
            print(f"[{node_id}] {marker} {result.text}")
        sys.stdout.flush()

    orchestrator.on_result = print_result
    orchestrator.on_warning = lambda message: print(message, file=sys.stderr)

    try:
        run = await orchestrator.execute(graph)
    except CycleDetectedError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INVALID_FLOW
    if run is None:
        return EXIT_REFUSED
    print(f"run {run.run_id}: {run.status.value}", file=sys.stderr)
    return EXIT_OK if run.status is RunStatus.COMPLETED else EXIT_RUN_FAILED


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "promptchain.main:app",
        host=args.host or settings.HOST,
        port=args.port or settings.PORT,
        reload=args.reload,
    )
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="promptchain", description="PromptChain flow runner")
    sub = parser.add_subparsers(dest="command", required=True)

    p_plan = sub.add_parser("plan", help="Print the execution order of a flow file")
    p_plan.add_argument("flow", help="Path to a flow JSON document")

    p_run = sub.add_parser("run", help="Execute a flow file and print node results")
    p_run.add_argument("flow", help="Path to a flow JSON document")
    p_run.add_argument("--json", action="store_true", help="Emit one JSON object per node result")

    p_serve = sub.add_parser("serve", help="Start the HTTP API")
    p_serve.add_argument("--host", default=None, help=f"Bind address (default: {settings.HOST})")
    p_serve.add_argument("--port", type=int, default=None, help=f"Port (default: {settings.PORT})")
    p_serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    args = parser.parse_args(argv)
    setup_logger(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL or "INFO")

    if args.command == "plan":
        return _cmd_plan(args)
    if args.command == "run":
        return asyncio.run(_run_flow(args))
    return _cmd_serve(args)


if __name__ == "__main__":
    sys.exit(main())
