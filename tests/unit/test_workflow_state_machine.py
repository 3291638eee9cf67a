"""Unit tests for task status transitions and step updates.

These tests assert that illegal transitions fail loudly and that the task
patch derived from invoked functions is explicit.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from task_orchestrator.orchestrator.catalog import WorkflowCatalog
from task_orchestrator.orchestrator.models import TaskStatus, Workflow
from task_orchestrator.orchestrator.workflow.state_machine import (
    IllegalTransitionError,
    build_task_update,
    transition,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def workflow(catalog: WorkflowCatalog) -> Workflow:
    wf = catalog.get_workflow("wf-onboarding")
    assert wf is not None
    return wf


def test_transition_allows_leaving_active() -> None:
    assert transition(current=TaskStatus.ACTIVE, to=TaskStatus.COMPLETED) == TaskStatus.COMPLETED
    assert transition(current=TaskStatus.ACTIVE, to=TaskStatus.ACTIVE) == TaskStatus.ACTIVE


@pytest.mark.parametrize("terminal", [TaskStatus.COMPLETED, TaskStatus.FAILED])
def test_transition_rejects_leaving_terminal_states(terminal: TaskStatus) -> None:
    with pytest.raises(IllegalTransitionError):
        transition(current=terminal, to=TaskStatus.ACTIVE)


def test_submit_moves_to_next_step(workflow: Workflow) -> None:
    update = build_task_update(
        [
            {
                "name": "submit",
                "args": {"name": "Bo"},
                "results": {"name": "Bo"},
                "status": "completed",
            }
        ],
        workflow=workflow,
        current_step=workflow.steps[0],
        now=NOW,
    )

    assert update == {
        "current_step": "s2",
        "context.steps.0.submitParams": {"name": "Bo"},
        "context.steps.0.submitResponse": {"name": "Bo"},
        "context.steps.0.updatedAt": NOW.isoformat(),
    }


def test_submit_on_last_step_completes_task(workflow: Workflow) -> None:
    update = build_task_update(
        [{"name": "submit", "args": {}, "status": "completed"}],
        workflow=workflow,
        current_step=workflow.steps[2],
        now=NOW,
    )

    assert update["status"] == TaskStatus.COMPLETED
    assert "current_step" not in update
    assert "context.steps.2.updatedAt" in update


def test_failed_submit_follows_failed_next(workflow: Workflow) -> None:
    update = build_task_update(
        [{"name": "submit", "args": {}, "status": "failed"}],
        workflow=workflow,
        current_step=workflow.steps[1],
        now=NOW,
    )

    assert update["status"] == TaskStatus.FAILED
    assert update["current_step"] == "s1"


def test_failed_submit_without_failed_next(workflow: Workflow) -> None:
    update = build_task_update(
        [{"name": "submit", "status": "failed"}],
        workflow=workflow,
        current_step=workflow.steps[0],
        now=NOW,
    )

    assert update["status"] == TaskStatus.FAILED
    assert "current_step" not in update


def test_submit_without_loaded_step_is_ignored(workflow: Workflow) -> None:
    assert build_task_update([{"name": "submit"}], workflow=None, current_step=None) == {}


def test_create_task_sets_created_at_and_step(workflow: Workflow) -> None:
    update = build_task_update(
        [{"name": "createTask", "results": {"currentStep": "s1"}, "status": "completed"}],
        workflow=workflow,
        current_step=None,
        now=NOW,
    )

    assert update == {"context.createdAt": NOW.isoformat(), "current_step": "s1"}


def test_failed_task_actions_produce_no_update(workflow: Workflow) -> None:
    update = build_task_update(
        [
            {"name": "createTask", "results": {"error": "x"}, "status": "failed"},
            {"name": "changeStep", "results": {"error": "x"}, "status": "failed"},
        ],
        workflow=workflow,
        current_step=workflow.steps[0],
    )

    assert update == {}


def test_change_step_sets_current_step(workflow: Workflow) -> None:
    update = build_task_update(
        [{"name": "changeStep", "results": {"id": "s3", "name": "payment"}}],
        workflow=workflow,
        current_step=workflow.steps[0],
    )

    assert update == {"current_step": "s3"}


def test_other_functions_do_not_update(workflow: Workflow) -> None:
    update = build_task_update(
        [
            {"name": "listSteps", "results": []},
            {"name": "lookupPlan"},
            "garbage",  # type: ignore[list-item]
        ],
        workflow=workflow,
        current_step=workflow.steps[0],
    )

    assert update == {}
