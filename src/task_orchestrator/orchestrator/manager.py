"""Task manager: the conversational task state machine.

One call to :meth:`TaskManager.run_turn` handles one user turn:

1. resolve the conversation's active task and build the output schema
2. rebuild the thread history from the last logged turn when none is given
3. compose instructions (current step, or workflow selection)
4. delegate to the reasoning agent with the action modules
5. validate the reply; an invalid reply is annotated, never raised
6. derive the task update from the invoked functions and persist it (best-effort)
7. iterate again when a task action changed state, up to ``max_iterations``
8. return the last reply with the number of iterations consumed

All collaborators come in through :class:`TaskManagerDeps`; the manager keeps no
state between calls.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError

from task_orchestrator.orchestrator.catalog import WorkflowCatalog
from task_orchestrator.orchestrator.delegate import DelegateRequest, ReasoningDelegate, StreamHook
from task_orchestrator.orchestrator.errors import SchemaValidationError
from task_orchestrator.orchestrator.history import ThreadHistory
from task_orchestrator.orchestrator.models import (
    ActionBinding,
    ResponseError,
    TaskStatus,
    TurnRequest,
    TurnResult,
)
from task_orchestrator.orchestrator.prompts import (
    compose_task_instructions,
    compose_workflow_selection,
)
from task_orchestrator.orchestrator.resolver import (
    ResolvedTask,
    TaskResolver,
    ambient_action_bindings,
)
from task_orchestrator.orchestrator.schema import (
    BASE_OUTPUT_SCHEMA,
    merge_schemas,
    shape_response,
    validate,
)
from task_orchestrator.orchestrator.store import TaskStore
from task_orchestrator.orchestrator.workflow.actions import (
    CORE_ACTIONS,
    ActionModuleSet,
    TaskContext,
    build_action_modules,
)
from task_orchestrator.orchestrator.workflow.registry import ActionRegistry
from task_orchestrator.orchestrator.workflow.state_machine import build_task_update, transition

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 3
INVALID_RESPONSE = "INVALID_RESPONSE"
AGENT_ERROR = "AGENT_ERROR"


class TurnLogSink(Protocol):
    def append(self, ext_id: str, function_name: str, entry: dict[str, Any]) -> None: ...


@dataclass(frozen=True, slots=True)
class TaskManagerDeps:
    """Collaborators shared by every iteration of a turn."""

    store: TaskStore
    catalog: WorkflowCatalog
    delegate: ReasoningDelegate
    history: ThreadHistory | None = None
    turn_log: TurnLogSink | None = None
    registry: ActionRegistry = field(default_factory=ActionRegistry)


@dataclass(slots=True)
class _Iteration:
    response: dict[str, Any]
    messages: list[dict[str, Any]]
    update: dict[str, Any]
    valid: bool


def build_output_schema(request: TurnRequest) -> dict[str, Any]:
    base = request.override_base_output_schema or BASE_OUTPUT_SCHEMA
    if request.output_schema:
        return merge_schemas(base, request.output_schema)
    return base


def _assistant_turn(schema: dict[str, Any], response: dict[str, Any]) -> dict[str, Any]:
    content = json.dumps(shape_response(schema, response), ensure_ascii=False, default=str)
    return {"role": "assistant", "content": content}


def _normalize_error(response: dict[str, Any]) -> dict[str, Any]:
    error = response.get("error")
    if error is None:
        return response
    try:
        normalized = ResponseError.model_validate(error, strict=True)
    except ValidationError:
        return {**response, "error": {"code": AGENT_ERROR, "message": str(error)}}
    return {**response, "error": normalized.model_dump()}


class TaskManager:
    def __init__(
        self,
        deps: TaskManagerDeps,
        *,
        max_iterations: int = MAX_ITERATIONS,
        history_max_retries: int = 10,
        agent_type: str = "taskManager",
    ) -> None:
        self._deps = deps
        self._resolver = TaskResolver(store=deps.store, catalog=deps.catalog)
        self._max_iterations = max_iterations
        self._history_max_retries = history_max_retries
        self._agent_type = agent_type

    def run_turn(self, request: TurnRequest, stream: StreamHook | None = None) -> TurnResult:
        ext_id = request.thread.ext_id
        agent_type = request.agent_type or self._agent_type
        output_schema = build_output_schema(request)

        thread_logs = list(request.thread_logs or [])
        if not thread_logs:
            thread_logs = self._load_history(ext_id, agent_type, output_schema)

        iterations = request.iterations
        user_input = request.input
        while True:
            logger.info("Starting iteration", extra={"ext_id": ext_id, "iteration": iterations})
            step = self._iterate(
                request,
                thread_logs=thread_logs,
                user_input=user_input,
                output_schema=output_schema,
                agent_type=agent_type,
                stream=stream,
            )

            functions = step.response.get("functions")
            invoked_core = isinstance(functions, list) and any(
                isinstance(f, dict) and f.get("name") in CORE_ACTIONS for f in functions
            )
            # A completed or failed task leaves nothing to continue.
            terminal = step.update.get("status") in (TaskStatus.COMPLETED, TaskStatus.FAILED)
            if not (step.update and invoked_core and not terminal):
                break
            if iterations >= self._max_iterations:
                logger.info("Iteration limit reached", extra={"ext_id": ext_id})
                break

            logger.info("Continuing with next iteration", extra={"ext_id": ext_id})
            thread_logs = [*step.messages, _assistant_turn(output_schema, step.response)]
            user_input = None
            iterations += 1

        self._record_turn(ext_id, agent_type, step, output_schema)
        logger.info("Finished turn", extra={"ext_id": ext_id, "iterations": iterations + 1})
        return TurnResult.model_validate(
            {
                "prompt": step.response.get("prompt"),
                **step.response,
                "consumption": {"type": "steps", "value": iterations + 1},
            }
        )

    def _iterate(
        self,
        request: TurnRequest,
        *,
        thread_logs: list[dict[str, Any]],
        user_input: str | None,
        output_schema: dict[str, Any],
        agent_type: str,
        stream: StreamHook | None,
    ) -> _Iteration:
        ext_id = request.thread.ext_id
        resolved = self._resolver.resolve(ext_id)
        copilot = resolved.copilot if resolved is not None else self._deps.catalog.copilot

        ctx = TaskContext(
            ext_id=ext_id,
            store=self._deps.store,
            workflows=copilot.all_workflows(),
            user=request.user,
        )
        if resolved is not None:
            ctx.task = resolved.task
            ctx.workflow = resolved.workflow
            ctx.current_step = resolved.current_step
        loaded_step = ctx.current_step

        bindings = (
            resolved.action_bindings if resolved is not None else ambient_action_bindings(copilot)
        )
        modules = self._action_modules(ctx, bindings)
        instructions = self._instructions(resolved, ctx) + request.instructions

        messages = list(thread_logs)
        if user_input:
            messages.append({"role": "user", "content": user_input})

        raw = self._deps.delegate(
            DelegateRequest(
                action_modules=modules,
                instructions=instructions,
                thread=request.thread,
                copilot=copilot,
                thread_logs=messages,
                input=user_input,
                audio=request.audio,
                user=request.user,
                answer=request.answer,
                options=request.options,
                agent_type=agent_type,
            ),
            stream,
        )
        if not isinstance(raw, dict):
            logger.warning("Delegate returned a non-object reply", extra={"ext_id": ext_id})
            raw = {"message": raw}

        try:
            response = validate(
                output_schema, raw, optional=False, path="$", reject_extra_properties=False
            )
            valid = True
        except SchemaValidationError as e:
            logger.warning("Agent response failed validation", extra={"error": str(e)})
            response = {**raw, "error": {"code": INVALID_RESPONSE, "message": str(e)}}
            valid = False
        response = _normalize_error(response)

        update: dict[str, Any] = {}
        if valid and isinstance(response.get("functions"), list):
            update = build_task_update(
                response["functions"],
                workflow=ctx.workflow,
                current_step=loaded_step or ctx.current_step,
            )
        if update:
            self._persist(ctx, update)
        return _Iteration(response=response, messages=messages, update=update, valid=valid)

    def _action_modules(self, ctx: TaskContext, bindings: list[ActionBinding]) -> ActionModuleSet:
        core = build_action_modules(ctx)
        if not bindings:
            return core
        return core.extend(self._deps.registry.resolve(bindings, ctx))

    def _instructions(self, resolved: ResolvedTask | None, ctx: TaskContext) -> str:
        if resolved is not None:
            return compose_task_instructions(
                workflow=resolved.workflow, step=resolved.current_step, task=resolved.task
            )
        return compose_workflow_selection(ctx.workflows)

    def _persist(self, ctx: TaskContext, update: dict[str, Any]) -> None:
        task = ctx.task
        if task is None:
            logger.warning("Task update without a task; dropping", extra={"update": list(update)})
            return
        try:
            if "status" in update:
                transition(current=task.status, to=TaskStatus(update["status"]))
            updated = self._deps.store.update(
                {"id": task.id, "status": TaskStatus.ACTIVE}, update
            )
            if updated is None:
                logger.warning(
                    "Task changed concurrently; update skipped", extra={"task_id": task.id}
                )
            else:
                logger.info(
                    "Task updated",
                    extra={
                        "task_id": task.id,
                        "status": updated.status.value,
                        "current_step": updated.current_step,
                    },
                )
        except Exception:
            logger.exception("Error updating task", extra={"task_id": task.id})

    def _load_history(
        self, ext_id: str, agent_type: str, output_schema: dict[str, Any]
    ) -> list[dict[str, Any]]:
        if self._deps.history is None:
            return []
        try:
            last = self._deps.history.get_thread_history(
                ext_id, function_name=agent_type, max_retries=self._history_max_retries
            )
        except Exception:
            logger.exception("Thread history unavailable", extra={"ext_id": ext_id})
            return []
        if not last:
            return []

        previous = dict(last)
        prompt = previous.pop("prompt", None)
        logs: list[dict[str, Any]] = []
        if isinstance(prompt, list):
            # Instructions are rebuilt every turn; only conversation messages are replayed.
            logs = [m for m in prompt if isinstance(m, dict) and m.get("role") != "system"]
        try:
            validated = validate(output_schema, previous)
        except SchemaValidationError as e:
            logger.warning("Last logged turn is invalid; not replayed", extra={"error": str(e)})
            return logs
        return [*logs, _assistant_turn(output_schema, validated)]

    def _record_turn(
        self, ext_id: str, agent_type: str, step: _Iteration, output_schema: dict[str, Any]
    ) -> None:
        if self._deps.turn_log is None:
            return
        entry = {**shape_response(output_schema, step.response), "prompt": step.messages}
        try:
            self._deps.turn_log.append(ext_id, agent_type, entry)
        except Exception:
            logger.exception("Error recording turn", extra={"ext_id": ext_id})
