"""Unit tests for task persistence."""

from __future__ import annotations

import pickle
from pathlib import Path

import pytest

from task_orchestrator.orchestrator.errors import ActiveTaskExists
from task_orchestrator.orchestrator.models import Task, TaskStatus
from task_orchestrator.orchestrator.store import (
    InMemoryTaskStore,
    JsonTaskStore,
    apply_patch,
    matches,
)


def test_apply_patch_creates_nested_containers() -> None:
    doc = {"id": "t1", "context": {"user": {"name": "Bo"}}}

    patched = apply_patch(
        doc,
        {"context.steps.0.submitParams": {"a": 1}, "status": TaskStatus.COMPLETED},
    )

    assert patched["context"]["steps"]["0"]["submitParams"] == {"a": 1}
    assert patched["context"]["user"] == {"name": "Bo"}
    assert patched["status"] == "completed"
    # Original document is untouched.
    assert "steps" not in doc["context"]


def test_matches_supports_dotted_keys_and_enums() -> None:
    doc = {"status": "active", "context": {"user": {"name": "Bo"}}}

    assert matches(doc, {"status": TaskStatus.ACTIVE, "context.user.name": "Bo"})
    assert not matches(doc, {"context.user.email": None})


def test_create_rejects_second_active_task_for_same_conversation() -> None:
    store = InMemoryTaskStore()
    first = store.create(Task(ext_id="c1", workflow="wf"))

    with pytest.raises(ActiveTaskExists) as exc_info:
        store.create(Task(ext_id="c1", workflow="wf"))

    assert exc_info.value.task_id == first.id
    # Other conversations and finished tasks are unaffected.
    store.create(Task(ext_id="c2", workflow="wf"))
    store.create(Task(ext_id="c1", workflow="wf", status=TaskStatus.COMPLETED))
    assert len(store.list({"ext_id": "c1"})) == 2


def test_active_task_exists_survives_pickling() -> None:
    error = ActiveTaskExists(ext_id="c1", task_id="t-1")
    error.add_note("raised during createTask")

    restored = pickle.loads(pickle.dumps(error))

    assert isinstance(restored, ActiveTaskExists)
    assert (restored.ext_id, restored.task_id) == ("c1", "t-1")
    assert str(restored) == "Conversation 'c1' already has an active task: t-1"


def test_update_is_compare_and_set_on_filter() -> None:
    store = InMemoryTaskStore()
    task = store.create(Task(ext_id="c1", workflow="wf", current_step="s1"))

    updated = store.update(
        {"id": task.id, "status": TaskStatus.ACTIVE}, {"status": TaskStatus.COMPLETED}
    )
    assert updated is not None
    assert updated.status == TaskStatus.COMPLETED

    stale = store.update({"id": task.id, "status": TaskStatus.ACTIVE}, {"current_step": "s2"})
    assert stale is None
    reloaded = store.find_one({"id": task.id})
    assert reloaded is not None
    assert reloaded.current_step == "s1"


def test_update_refreshes_updated_at() -> None:
    store = InMemoryTaskStore([Task(id="t1", ext_id="c1", workflow="wf", updated_at="2000-01-01")])

    updated = store.update({"id": "t1"}, {"current_step": "s2"})

    assert updated is not None
    assert updated.updated_at > "2000-01-01"


def test_find_one_sorts_by_field() -> None:
    done = TaskStatus.COMPLETED
    store = InMemoryTaskStore(
        [
            Task(id="old", ext_id="c1", workflow="wf", status=done, updated_at="2024-01-01"),
            Task(id="new", ext_id="c1", workflow="wf", status=done, updated_at="2024-06-01"),
        ]
    )

    newest = store.find_one({"ext_id": "c1"}, sort=("updated_at", -1))
    oldest = store.find_one({"ext_id": "c1"}, sort=("updated_at", 1))

    assert newest is not None and newest.id == "new"
    assert oldest is not None and oldest.id == "old"
    assert store.find_one({"ext_id": "missing"}) is None


def test_json_store_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "state" / "tasks.json"
    store = JsonTaskStore(path)
    task = store.create(Task(ext_id="c1", workflow="wf", context={"user": {"name": "Bo"}}))
    store.update({"id": task.id}, {"context.steps.0.submitResponse": "done"})

    reloaded = JsonTaskStore(path).find_one({"ext_id": "c1"})

    assert reloaded is not None
    assert reloaded.id == task.id
    assert reloaded.status == TaskStatus.ACTIVE
    assert reloaded.context == {"user": {"name": "Bo"}, "steps": {"0": {"submitResponse": "done"}}}


def test_json_store_treats_corrupt_file_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    path.write_text("{not json", encoding="utf-8")

    assert JsonTaskStore(path).list() == []
