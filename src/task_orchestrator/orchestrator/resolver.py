"""Active task resolution.

Read-only: all task mutation happens in the task manager after the agent's
reply has been validated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from task_orchestrator.orchestrator.catalog import WorkflowCatalog
from task_orchestrator.orchestrator.errors import StepNotFound, WorkflowNotFound
from task_orchestrator.orchestrator.models import (
    ActionBinding,
    Copilot,
    Step,
    Task,
    TaskStatus,
    Workflow,
)
from task_orchestrator.orchestrator.store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedTask:
    task: Task
    workflow: Workflow
    current_step: Step
    copilot: Copilot

    @property
    def action_bindings(self) -> list[ActionBinding]:
        return [*ambient_action_bindings(self.copilot), *self.current_step.actions]


def ambient_action_bindings(copilot: Copilot) -> list[ActionBinding]:
    job_actions = copilot.job.actions if copilot.job is not None else []
    return [*copilot.actions, *job_actions]


class TaskResolver:
    def __init__(self, *, store: TaskStore, catalog: WorkflowCatalog) -> None:
        self._store = store
        self._catalog = catalog

    def find_active(self, ext_id: str) -> Task | None:
        return self._store.find_one(
            {"ext_id": ext_id, "status": TaskStatus.ACTIVE}, sort=("updated_at", -1)
        )

    def resolve(self, ext_id: str) -> ResolvedTask | None:
        """Load the active task for ``ext_id`` with its workflow and current step.

        Returns None when the conversation has no active task.

        Raises:
            WorkflowNotFound: the task references a workflow missing from the catalog.
            StepNotFound: the task's current step is not part of its workflow.
        """

        task = self.find_active(ext_id)
        logger.debug("Active task lookup", extra={"ext_id": ext_id, "found": task is not None})
        if task is None:
            return None

        workflow = self._catalog.get_workflow(task.workflow)
        if workflow is None:
            raise WorkflowNotFound(f"Workflow {task.workflow!r} of task {task.id} not found")

        step = self._catalog.get_step(task.current_step)
        if step is None or workflow.step_index(step.id) < 0:
            raise StepNotFound(
                f"Step {task.current_step!r} of task {task.id} not found in workflow "
                f'"{workflow.name}"'
            )

        copilot = self._catalog.copilot
        ambient_job = copilot.job.id if copilot.job is not None else None
        if step.job and step.job != ambient_job:
            job = self._catalog.get_job(step.job)
            if job is None:
                logger.warning("Step job not found; keeping ambient job", extra={"job": step.job})
            else:
                copilot = copilot.model_copy(update={"job": job})

        logger.info(
            "Resolved active task",
            extra={"ext_id": ext_id, "task_id": task.id, "step": step.name},
        )
        return ResolvedTask(task=task, workflow=workflow, current_step=step, copilot=copilot)
