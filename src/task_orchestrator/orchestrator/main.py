"""CLI entrypoint for the task orchestrator."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from task_orchestrator import __version__
from task_orchestrator.core.config import OrchestratorConfig
from task_orchestrator.llm.factory import LLMFactory
from task_orchestrator.llm.provider import LLMProvider
from task_orchestrator.orchestrator.catalog import WorkflowCatalog
from task_orchestrator.orchestrator.delegate import FunctionCallAgent
from task_orchestrator.orchestrator.errors import OrchestratorError
from task_orchestrator.orchestrator.history import ThreadHistory, TurnLogStore
from task_orchestrator.orchestrator.manager import TaskManager, TaskManagerDeps
from task_orchestrator.orchestrator.models import ThreadRef, TurnRequest
from task_orchestrator.orchestrator.store import JsonTaskStore
from task_orchestrator.orchestrator.workflow.registry import ActionRegistry

logger = logging.getLogger(__name__)


def build_task_manager(
    config: OrchestratorConfig,
    *,
    llm: LLMProvider | None = None,
    registry: ActionRegistry | None = None,
) -> TaskManager:
    """Wire the file-backed stores, the catalog and the function-call agent."""

    turn_log = TurnLogStore(config.state.turns_file)
    deps = TaskManagerDeps(
        store=JsonTaskStore(config.state.tasks_file),
        catalog=WorkflowCatalog.from_file(config.state.definitions_path),
        delegate=FunctionCallAgent(llm or LLMFactory.create(config.llm)),
        history=ThreadHistory(turn_log, wait_seconds=config.tasks.history_retry_wait_seconds),
        turn_log=turn_log,
        registry=registry or ActionRegistry(),
    )
    return TaskManager(
        deps,
        max_iterations=config.tasks.max_iterations,
        history_max_retries=config.tasks.history_max_retries,
        agent_type=config.tasks.agent_type,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-orchestrator",
        description="Conversational task orchestrator",
    )
    parser.add_argument(
        "--version", action="version", version=f"conversational-task-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Run one conversational turn")
    chat.add_argument("--thread", required=True, help="External conversation identifier")
    chat.add_argument("--input", required=True, help="User message")
    chat.add_argument(
        "--instructions",
        default="",
        help="Extra instructions appended after the task prompt",
    )
    chat.add_argument("--user", default="Guest", help="User name stored in the task context")
    chat.add_argument(
        "--stream",
        action="store_true",
        help="Echo the raw JSON reply tokens as they arrive, then the message",
    )
    chat.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the whole turn result as JSON",
    )

    tasks = subparsers.add_parser("tasks", help="List tasks for a conversation")
    tasks.add_argument("--thread", required=True, help="External conversation identifier")

    subparsers.add_parser("workflows", help="List available workflows")

    return parser


def _stream_to_stdout(token: str) -> None:
    sys.stdout.write(token)
    sys.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = OrchestratorConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    config.setup_logging()

    try:
        if args.command == "workflows":
            catalog = WorkflowCatalog.from_file(config.state.definitions_path)
            for wf in catalog.copilot.all_workflows():
                print(f"- {wf.name}: {wf.description}")
            return 0

        if args.command == "tasks":
            store = JsonTaskStore(config.state.tasks_file)
            for task in store.list({"ext_id": args.thread}):
                print(f"{task.id}  {task.status.value:<9}  {task.name}  step={task.current_step}")
            return 0

        if args.command == "chat":
            try:
                manager = build_task_manager(config)
            except ValueError as e:
                print(f"Configuration error: {e}", file=sys.stderr)
                return 2

            result = manager.run_turn(
                TurnRequest(
                    instructions=args.instructions,
                    input=args.input,
                    user={"name": args.user},
                    thread=ThreadRef(ext_id=args.thread),
                ),
                stream=_stream_to_stdout if args.stream else None,
            )
            if args.as_json:
                print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
            else:
                if args.stream:
                    print()
                print(result.message)
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except OrchestratorError as e:
        logger.warning(str(e), extra={"error_type": type(e).__name__})
        print(str(e), file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
