"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from task_orchestrator.core.config import (
    LLMConfig,
    OrchestratorConfig,
    StateConfig,
    TaskManagerConfig,
)
from task_orchestrator.orchestrator.catalog import WorkflowCatalog
from task_orchestrator.orchestrator.delegate import DelegateRequest
from task_orchestrator.orchestrator.manager import TaskManager, TaskManagerDeps
from task_orchestrator.orchestrator.store import InMemoryTaskStore

DEFINITIONS: dict[str, Any] = {
    "copilot": {
        "name": "Ada",
        "backstory": "Helps new customers.",
        "job": "job-support",
        "workflows": ["wf-feedback"],
    },
    "jobs": [
        {
            "id": "job-support",
            "role": "Support agent",
            "goal": "Onboard customers",
            "description": "Runs onboarding.",
            "workflows": ["wf-onboarding"],
        },
        {
            "id": "job-billing",
            "role": "Billing specialist",
            "goal": "Settle invoices",
            "description": "Handles payments.",
        },
    ],
    "workflows": [
        {
            "id": "wf-onboarding",
            "name": "Onboarding",
            "description": "Collect customer details",
            "firstStep": "s1",
            "steps": [
                {
                    "id": "s1",
                    "name": "collect-name",
                    "description": "Ask for the name",
                    "instructions": "Ask the user for their name.",
                    "submitWhen": "The user gave their name.",
                    "next": "s2",
                },
                {
                    "id": "s2",
                    "name": "confirm-plan",
                    "description": "Confirm the plan",
                    "instructions": "Ask which plan the user wants.",
                    "submitWhen": "The user picked a plan.",
                    "next": "s3",
                    "failedNext": "s1",
                },
                {
                    "id": "s3",
                    "name": "payment",
                    "description": "Take payment",
                    "instructions": "Collect payment details.",
                    "submitWhen": "Payment is confirmed.",
                    "job": "job-billing",
                },
            ],
        },
        {
            "id": "wf-feedback",
            "name": "Feedback",
            "description": "Record product feedback",
            "firstStep": "f1",
            "steps": [{"id": "f1", "name": "record-feedback", "description": "Write it down"}],
        },
    ],
}


class ScriptedDelegate:
    """Reasoning delegate that replays scripted replies.

    Each script item is either a reply dict or a callable taking the
    :class:`DelegateRequest` and returning one. Requested functions are run
    through the request's action modules, like the real agent does.
    """

    def __init__(self, *replies: dict[str, Any] | Callable[[DelegateRequest], Any]) -> None:
        self._replies = list(replies)
        self.requests: list[DelegateRequest] = []

    def __call__(self, request: DelegateRequest, stream: Any = None) -> Any:
        self.requests.append(request)
        item = self._replies.pop(0) if self._replies else {"message": "ok", "functions": []}
        reply = item(request) if callable(item) else item
        if not isinstance(reply, dict) or not isinstance(reply.get("functions"), list):
            return reply

        executed = []
        for call in reply["functions"]:
            if not isinstance(call, dict) or "results" in call:
                executed.append(call)
                continue
            results = request.action_modules.call(call["name"], call.get("args"))
            executed.append({"status": "completed", **call, "results": results})
        return {"prompt": list(request.thread_logs), **reply, "functions": executed}


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / ".state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )


@pytest.fixture
def state_config(temp_state_dir: Path, tmp_path: Path) -> StateConfig:
    """Provide a test state configuration."""
    return StateConfig(
        storage_path=temp_state_dir,
        definitions_path=tmp_path / "workflows.json",
    )


@pytest.fixture
def orchestrator_config(llm_config: LLMConfig, state_config: StateConfig) -> OrchestratorConfig:
    """Provide a test orchestrator configuration."""
    return OrchestratorConfig(
        log_level="DEBUG",
        debug=True,
        llm=llm_config,
        state=state_config,
        tasks=TaskManagerConfig(history_retry_wait_seconds=0),
    )


@pytest.fixture
def definitions() -> dict[str, Any]:
    return DEFINITIONS


@pytest.fixture
def catalog() -> WorkflowCatalog:
    return WorkflowCatalog.from_dict(DEFINITIONS)


@pytest.fixture
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def make_manager(
    store: InMemoryTaskStore, catalog: WorkflowCatalog
) -> Callable[..., TaskManager]:
    """Build a task manager around a scripted delegate."""

    def _make(delegate: Any, **kwargs: Any) -> TaskManager:
        deps_kwargs = {
            key: kwargs.pop(key) for key in ("history", "turn_log", "registry") if key in kwargs
        }
        deps = TaskManagerDeps(store=store, catalog=catalog, delegate=delegate, **deps_kwargs)
        return TaskManager(deps, **kwargs)

    return _make


@pytest.fixture
def make_delegate() -> type[ScriptedDelegate]:
    return ScriptedDelegate
