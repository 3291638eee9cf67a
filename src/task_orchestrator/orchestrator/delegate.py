"""Reasoning delegate: the function-calling agent behind each iteration.

The task manager only depends on :class:`ReasoningDelegate`. The default
implementation, :class:`FunctionCallAgent`, asks an LLM for a JSON reply of the
form ``{"message": ..., "functions": [{"name": ..., "args": {...}}]}``, runs the
requested functions through the action set and fills in their ``results`` and
``status``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from task_orchestrator.llm.provider import LLMProvider
from task_orchestrator.orchestrator.errors import OrchestratorError
from task_orchestrator.orchestrator.models import Copilot, FunctionCall, ThreadRef
from task_orchestrator.orchestrator.prompts import compose_chat_instructions
from task_orchestrator.orchestrator.workflow.actions import ActionModuleSet

logger = logging.getLogger(__name__)

StreamHook = Callable[[str], None]

FUNCTIONS_GUIDE = """
## Functions
You can call these functions. Each is described as `name<args>(description)->(returns)`;
`!` marks a required argument.
<functions>
{specs}
</functions>

## Reply format
Reply with a single JSON object and nothing else:
{{"message": "<text for the user>", "functions": [{{"name": "<function name>", "args": {{...}}}}]}}
Use an empty "functions" list when no function is needed.
"""


@dataclass(frozen=True, slots=True)
class DelegateRequest:
    action_modules: ActionModuleSet
    instructions: str
    thread: ThreadRef
    copilot: Copilot
    thread_logs: list[dict[str, Any]] = field(default_factory=list)
    input: str | None = None
    audio: Any = None
    user: dict[str, Any] = field(default_factory=dict)
    answer: Any = None
    options: dict[str, Any] = field(default_factory=dict)
    agent_type: str = "taskManager"


class ReasoningDelegate(Protocol):
    def __call__(
        self, request: DelegateRequest, stream: StreamHook | None = None
    ) -> dict[str, Any]: ...


def _parse_reply(content: str) -> dict[str, Any]:
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        logger.warning("Agent reply is not JSON; treating it as a plain message")
        return {"message": content, "functions": []}
    if not isinstance(parsed, dict):
        return {"message": content, "functions": []}
    return parsed


class FunctionCallAgent:
    """LLM-backed reasoning delegate."""

    def __init__(self, llm: LLMProvider, *, max_tokens: int | None = None) -> None:
        self._llm = llm
        self._max_tokens = max_tokens

    def __call__(
        self, request: DelegateRequest, stream: StreamHook | None = None
    ) -> dict[str, Any]:
        specs = "\n".join(f"- {spec}" for spec in request.action_modules.specs().values())
        system = compose_chat_instructions(
            copilot=request.copilot, instructions=request.instructions
        ) + FUNCTIONS_GUIDE.format(specs=specs)
        messages = [{"role": "system", "content": system}, *request.thread_logs]

        if request.answer is not None:
            # Pre-supplied answer: skip the model, still run the functions.
            raw = request.answer if isinstance(request.answer, str) else json.dumps(request.answer)
            prompt: list[dict[str, Any]] = messages
        else:
            completion = self._llm.chat(
                messages,
                max_tokens=self._max_tokens,
                temperature=request.options.get("temperature"),
                json_output=True,
                on_token=stream,
            )
            raw = completion.content
            prompt = completion.prompt
            logger.info(
                "Agent replied",
                extra={"ext_id": request.thread.ext_id, "tokens": completion.tokens},
            )

        reply = _parse_reply(raw)
        response: dict[str, Any] = {"prompt": prompt, **reply}
        if isinstance(reply.get("functions"), list):
            response["functions"], failures = self._run_functions(
                request.action_modules, reply["functions"]
            )
            if failures and isinstance(response.get("message"), str):
                response["message"] = "\n\n".join([response["message"], *failures]).strip()
        return response

    def _run_functions(
        self, modules: ActionModuleSet, calls: list[Any]
    ) -> tuple[list[Any], list[str]]:
        executed: list[Any] = []
        failures: list[str] = []
        for call in calls:
            if not isinstance(call, dict) or not isinstance(call.get("name"), str):
                # Left for schema validation to report.
                executed.append(call)
                continue

            name = call["name"]
            args = call.get("args") if isinstance(call.get("args"), dict) else {}
            declared_failed = call.get("status") == "failed"
            try:
                results = modules.call(name, args)
                status = "failed" if declared_failed else "completed"
            except OrchestratorError as e:
                logger.warning("Function call failed", extra={"function": name, "error": str(e)})
                results = {"error": str(e)}
                status = "failed"
                failures.append(f"({name} failed: {e})")
            record = {**call, "args": args, "results": results, "status": status}
            executed.append(FunctionCall.model_validate(record).model_dump())
        return executed, failures
