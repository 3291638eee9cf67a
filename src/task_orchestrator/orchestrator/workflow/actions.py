"""Action modules exposed to the reasoning agent.

Each module is a named callable bound to the per-call :class:`TaskContext` and
carries a capability spec string (``name<args>(description)->(returns)``) the
agent uses to decide when to call it. Advertising a capability does not
dispatch it: the task manager interprets which functions were invoked after
the agent replies.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from task_orchestrator.orchestrator.errors import (
    ConfigurationError,
    StepNotFound,
    TaskNotFound,
    WorkflowNotFound,
)
from task_orchestrator.orchestrator.models import Step, Task, Workflow
from task_orchestrator.orchestrator.store import TaskStore

logger = logging.getLogger(__name__)

ActionFn = Callable[[dict[str, Any]], Any]

CORE_ACTIONS: tuple[str, ...] = ("createTask", "listSteps", "getStep", "submit", "changeStep")

ACTION_SPECS: dict[str, str] = {
    "createTask": (
        "createTask<!workflowName:string(name of the workflow to start)>"
        "(creates a new task)->(returns the created task)"
    ),
    "listSteps": (
        "listSteps<>(lists all steps in the workflow)"
        "->(returns array of {name, description})"
    ),
    "getStep": (
        "getStep<!name:string(name of the step)>"
        "(gets step details by name)->(returns step details)"
    ),
    "submit": (
        "submit<any(object stored in the task context for future reference)>"
        "(submits step completion)->(returns the submitted object)"
    ),
    "changeStep": (
        "changeStep<!name:string(name of the step to change to)>"
        "(changes the current step)->(returns {name, description, id})"
    ),
}


@dataclass(frozen=True, slots=True)
class ActionModule:
    name: str
    spec: str
    fn: ActionFn

    def __call__(self, args: Mapping[str, Any] | None = None) -> Any:
        return self.fn(dict(args or {}))


@dataclass(slots=True)
class TaskContext:
    """Mutable bindings shared by the action closures for one turn."""

    ext_id: str
    store: TaskStore
    workflows: list[Workflow]
    user: dict[str, Any] = field(default_factory=dict)
    task: Task | None = None
    workflow: Workflow | None = None
    current_step: Step | None = None


class ActionModuleSet(Mapping[str, ActionModule]):
    def __init__(self, modules: Iterable[ActionModule]) -> None:
        self._modules: dict[str, ActionModule] = {m.name: m for m in modules}

    def __getitem__(self, name: str) -> ActionModule:
        return self._modules[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    def specs(self) -> dict[str, str]:
        return {name: module.spec for name, module in self._modules.items()}

    def call(self, name: str, args: Mapping[str, Any] | None = None) -> Any:
        module = self._modules.get(name)
        if module is None:
            raise ConfigurationError(f"Unknown action: {name!r}")
        return module(args)

    def extend(self, modules: Iterable[ActionModule]) -> ActionModuleSet:
        merged = dict(self._modules)
        for module in modules:
            if module.name in CORE_ACTIONS:
                logger.warning(
                    "Ignoring action that shadows a core action", extra={"action": module.name}
                )
                continue
            merged[module.name] = module
        return ActionModuleSet(merged.values())


def _required(args: Mapping[str, Any], key: str, action: str) -> str:
    value = args.get(key)
    if not value:
        found = ", ".join(sorted(args)) or "none"
        raise ConfigurationError(f"{action}: `{key}` arg is required, found: {found}")
    return str(value)


def _require_workflow(ctx: TaskContext) -> Workflow:
    if ctx.workflow is None:
        raise TaskNotFound(f"No active task for conversation {ctx.ext_id!r}; call createTask first")
    return ctx.workflow


def _find_step(workflow: Workflow, name: str) -> Step:
    step = workflow.find_step(name)
    if step is None:
        raise StepNotFound(f'Step "{name}" not found in workflow "{workflow.name}"')
    return step


def build_action_modules(ctx: TaskContext) -> ActionModuleSet:
    """Bind the five core task actions to ``ctx``."""

    def create_task(args: dict[str, Any]) -> dict[str, Any]:
        workflow_name = _required(args, "workflowName", "createTask")
        selected = next(
            (wf for wf in ctx.workflows if wf.name.lower() == workflow_name.lower()), None
        )
        if selected is None:
            raise WorkflowNotFound(f'Workflow "{workflow_name}" not found')

        task = ctx.store.create(
            Task(
                ext_id=ctx.ext_id,
                name=selected.name,
                description=selected.description,
                workflow=selected.id,
                current_step=selected.first_step,
                context={"user": ctx.user},
            )
        )
        ctx.task = task
        ctx.workflow = selected
        ctx.current_step = selected.step_by_id(selected.first_step)
        logger.info(
            "New task created",
            extra={"task_id": task.id, "ext_id": ctx.ext_id, "workflow": selected.name},
        )
        return {
            "id": task.id,
            "name": task.name,
            "description": task.description,
            "workflow": task.workflow,
            "currentStep": task.current_step,
            "status": task.status.value,
        }

    def list_steps(_args: dict[str, Any]) -> list[dict[str, str]]:
        workflow = _require_workflow(ctx)
        return [{"name": step.name, "description": step.description} for step in workflow.steps]

    def get_step(args: dict[str, Any]) -> dict[str, Any]:
        name = _required(args, "name", "getStep")
        step = _find_step(_require_workflow(ctx), name)
        return step.model_dump(mode="json", by_alias=True)

    def submit(args: dict[str, Any]) -> dict[str, Any]:
        return args

    def change_step(args: dict[str, Any]) -> dict[str, Any]:
        name = _required(args, "name", "changeStep")
        step = _find_step(_require_workflow(ctx), name)
        if ctx.task is None:
            raise TaskNotFound(f"No active task for conversation {ctx.ext_id!r}")
        ctx.store.update({"id": ctx.task.id}, {"current_step": step.id})
        ctx.current_step = step
        logger.info("Step changed", extra={"task_id": ctx.task.id, "step": step.name})
        return {"name": step.name, "description": step.description, "id": step.id}

    fns: dict[str, ActionFn] = {
        "createTask": create_task,
        "listSteps": list_steps,
        "getStep": get_step,
        "submit": submit,
        "changeStep": change_step,
    }
    return ActionModuleSet(
        ActionModule(name, ACTION_SPECS[name], fns[name]) for name in CORE_ACTIONS
    )
