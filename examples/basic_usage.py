#!/usr/bin/env python3
"""Programmatic usage example.

This demonstrates using the orchestrator components directly:

* load settings from `.env`
* register a native action a workflow step can use
* run one conversational turn and print the reply
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Sequence

from task_orchestrator.core.config import OrchestratorConfig
from task_orchestrator.orchestrator.main import build_task_manager
from task_orchestrator.orchestrator.models import ThreadRef, TurnRequest
from task_orchestrator.orchestrator.workflow.actions import TaskContext
from task_orchestrator.orchestrator.workflow.registry import ActionRegistry

registry = ActionRegistry()


@registry.native("lookupPlan", spec="lookupPlan<!plan:string(plan name)>(plan details)->(price)")
def lookup_plan(args: dict[str, Any], ctx: TaskContext) -> dict[str, Any]:
    prices = {"basic": 0, "pro": 20}
    return {"plan": args.get("plan"), "price": prices.get(str(args.get("plan")).lower())}


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one turn (programmatic example).")
    parser.add_argument("--thread", default="example-thread", help="Conversation identifier")
    parser.add_argument("--input", required=True, help="User message")
    parser.add_argument(
        "--definitions",
        default=str(Path(__file__).with_name("workflows.json")),
        help="Definitions file",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    config = OrchestratorConfig()
    config.state.definitions_path = Path(args.definitions)
    config.setup_logging()

    manager = build_task_manager(config, registry=registry)
    result = manager.run_turn(
        TurnRequest(input=args.input, thread=ThreadRef(ext_id=args.thread))
    )

    print(result.message)
    print(f"Steps consumed: {result.consumption.value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
