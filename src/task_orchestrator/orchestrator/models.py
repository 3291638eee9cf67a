"""Pydantic models for tasks, workflow definitions and agent turns.

Definitions (jobs, workflows, steps) are authored in camelCase JSON and exposed
as snake_case attributes. Tasks are persisted in snake_case; only the free-form
``context`` mapping keeps the camelCase keys written by step transitions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class _Definition(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionBinding(_Definition):
    """Reference to an externally registered action available to the agent."""

    name: str
    module_url: str
    spec: str | None = None


class Step(_Definition):
    id: str
    name: str
    description: str = ""
    instructions: str = ""
    submit_when: str = ""
    next: str | None = None
    failed_next: str | None = None
    actions: list[ActionBinding] = Field(default_factory=list)
    job: str | None = None


class Workflow(_Definition):
    id: str
    name: str
    description: str = ""
    first_step: str | None = None
    steps: list[Step] = Field(default_factory=list)

    def find_step(self, name: str) -> Step | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def step_by_id(self, step_id: str | None) -> Step | None:
        if step_id is None:
            return None
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def step_index(self, step_id: str) -> int:
        for idx, step in enumerate(self.steps):
            if step.id == step_id:
                return idx
        return -1


class Job(_Definition):
    id: str
    role: str = ""
    goal: str = ""
    description: str = ""
    workflows: list[Workflow] = Field(default_factory=list)
    actions: list[ActionBinding] = Field(default_factory=list)


class Copilot(_Definition):
    """The assistant persona a conversation talks to."""

    name: str = "Assistant"
    backstory: str = ""
    job: Job | None = None
    workflows: list[Workflow] = Field(default_factory=list)
    actions: list[ActionBinding] = Field(default_factory=list)

    def all_workflows(self) -> list[Workflow]:
        job_workflows = self.job.workflows if self.job is not None else []
        return [*job_workflows, *self.workflows]


class Task(BaseModel):
    """An instantiated workflow for a single conversation."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    ext_id: str
    name: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.ACTIVE
    workflow: str
    current_step: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class FunctionCall(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    results: Any = None
    status: str | None = None


class ThreadRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ext_id: str = Field(alias="extId")


class TurnRequest(BaseModel):
    """Inbound call contract for a single conversational turn."""

    instructions: str = ""
    input: str | None = None
    audio: Any = None
    user: dict[str, Any] = Field(default_factory=dict)
    thread: ThreadRef
    thread_logs: list[dict[str, Any]] | None = None
    answer: Any = None
    options: dict[str, Any] = Field(default_factory=dict)
    iterations: int = 0
    output_schema: dict[str, Any] | None = None
    override_base_output_schema: dict[str, Any] | None = None
    agent_type: str | None = None


class ResponseError(BaseModel):
    code: str
    message: str


class Consumption(BaseModel):
    type: str = "steps"
    value: int


class TurnResult(BaseModel):
    """What the caller gets back for one turn.

    ``message`` and ``functions`` are kept loosely typed: a degraded response is
    returned as produced by the agent, alongside ``error``.
    """

    model_config = ConfigDict(extra="allow")

    prompt: Any = None
    message: Any = None
    functions: Any = None
    error: ResponseError | None = None
    consumption: Consumption
