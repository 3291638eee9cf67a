"""Task status transitions and the task patch derived from invoked functions.

``createTask`` only adds ``context.createdAt``; the ``context.user`` captured at
creation is kept rather than replaced.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from task_orchestrator.orchestrator.models import Step, TaskStatus, Workflow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.ACTIVE: {TaskStatus.ACTIVE, TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: TaskStatus, to: TaskStatus) -> TaskStatus:
    if to not in ALLOWED_TRANSITIONS.get(current, set()):
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


def _submit_update(
    call: Mapping[str, Any], *, workflow: Workflow, step: Step, now: str
) -> dict[str, Any]:
    update: dict[str, Any] = {}
    if call.get("status") != "failed":
        if step.next:
            update["current_step"] = step.next
        else:
            update["status"] = TaskStatus.COMPLETED
    else:
        update["status"] = TaskStatus.FAILED
        if step.failed_next:
            update["current_step"] = step.failed_next

    idx = workflow.step_index(step.id)
    update[f"context.steps.{idx}.submitParams"] = call.get("args")
    update[f"context.steps.{idx}.submitResponse"] = call.get("results")
    update[f"context.steps.{idx}.updatedAt"] = now
    return update


def build_task_update(
    functions: Iterable[Mapping[str, Any]],
    *,
    workflow: Workflow | None,
    current_step: Step | None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Derive the pending task patch from the functions the agent invoked.

    The patch uses dotted keys for nested context fields. Functions other than
    ``submit``, ``createTask`` and ``changeStep`` do not change task state.
    """

    stamp = (now or datetime.now(tz=UTC)).isoformat()
    update: dict[str, Any] = {}

    for call in functions:
        if not isinstance(call, Mapping):
            continue
        name = call.get("name")
        results = call.get("results")
        failed = call.get("status") == "failed"

        if name == "submit":
            if workflow is None or current_step is None:
                logger.warning("Ignoring submit without a loaded step")
                continue
            logger.info(
                "Processing submit",
                extra={"step": current_step.name, "function_status": call.get("status")},
            )
            update.update(_submit_update(call, workflow=workflow, step=current_step, now=stamp))

        elif name == "createTask":
            if failed or not isinstance(results, Mapping):
                continue
            update["context.createdAt"] = stamp
            update["current_step"] = results.get("currentStep")

        elif name == "changeStep":
            if failed or not isinstance(results, Mapping):
                continue
            update["current_step"] = results.get("id")

    return update
