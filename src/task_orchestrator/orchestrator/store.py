"""Task persistence.

Tasks are kept as plain documents with "find then update" semantics. Patches
may address nested fields with dotted paths (``context.steps.0.submitParams``).

Two backends share the same behaviour:
- :class:`JsonTaskStore` persists to a local JSON file (best-effort, single process)
- :class:`InMemoryTaskStore` keeps documents in memory (tests, embedding)
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from task_orchestrator.orchestrator.errors import ActiveTaskExists
from task_orchestrator.orchestrator.models import Task, TaskStatus, utc_now_iso

logger = logging.getLogger(__name__)

Document = dict[str, Any]
SortSpec = tuple[str, int]

_MISSING = object()


class TaskStore(Protocol):
    def find_one(self, filter: dict[str, Any], *, sort: SortSpec | None = None) -> Task | None: ...

    def list(self, filter: dict[str, Any] | None = None) -> list[Task]: ...

    def create(self, task: Task) -> Task: ...

    def update(self, filter: dict[str, Any], patch: dict[str, Any]) -> Task | None: ...


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def get_path(doc: Document, dotted: str) -> Any:
    current: Any = doc
    for part in dotted.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def apply_patch(doc: Document, patch: dict[str, Any]) -> Document:
    """Return a copy of ``doc`` with ``patch`` applied.

    Intermediate containers that are missing (or not mappings) are replaced by
    empty dicts, so ``context.steps.0.submitParams`` works on a fresh task.
    """

    updated = copy.deepcopy(doc)
    for key, value in patch.items():
        parts = key.split(".")
        target = updated
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        target[parts[-1]] = copy.deepcopy(_plain(value))
    return updated


def matches(doc: Document, filter: dict[str, Any]) -> bool:
    return all(get_path(doc, key) == _plain(expected) for key, expected in filter.items())


class _DocumentTaskStore:
    """Shared query/update logic over a list of task documents."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[Document]:
        raise NotImplementedError

    def _save_unlocked(self, docs: list[Document]) -> None:
        raise NotImplementedError

    def find_one(self, filter: dict[str, Any], *, sort: SortSpec | None = None) -> Task | None:
        with self._lock:
            found = [doc for doc in self._load_unlocked() if matches(doc, filter)]
        if not found:
            return None
        if sort is not None:
            field, direction = sort
            found.sort(key=lambda d: str(get_path(d, field)), reverse=direction < 0)
        return Task.model_validate(found[0])

    def list(self, filter: dict[str, Any] | None = None) -> list[Task]:
        with self._lock:
            docs = self._load_unlocked()
        return [Task.model_validate(doc) for doc in docs if matches(doc, filter or {})]

    def create(self, task: Task) -> Task:
        with self._lock:
            docs = self._load_unlocked()
            if task.status == TaskStatus.ACTIVE:
                for doc in docs:
                    if doc.get("ext_id") == task.ext_id and doc.get("status") == "active":
                        raise ActiveTaskExists(ext_id=task.ext_id, task_id=str(doc.get("id")))
            docs.append(task.model_dump(mode="json"))
            self._save_unlocked(docs)
        logger.debug("Task created", extra={"task_id": task.id, "ext_id": task.ext_id})
        return task

    def update(self, filter: dict[str, Any], patch: dict[str, Any]) -> Task | None:
        with self._lock:
            docs = self._load_unlocked()
            for idx, doc in enumerate(docs):
                if not matches(doc, filter):
                    continue
                merged = apply_patch(doc, {**patch, "updated_at": utc_now_iso()})
                # Re-validate so a bad patch never reaches storage.
                task = Task.model_validate(merged)
                docs[idx] = task.model_dump(mode="json")
                self._save_unlocked(docs)
                return task
        logger.debug("Task update matched nothing", extra={"filter": filter})
        return None


class InMemoryTaskStore(_DocumentTaskStore):
    def __init__(self, tasks: list[Task] | None = None) -> None:
        super().__init__()
        self._docs: list[Document] = [t.model_dump(mode="json") for t in tasks or []]

    def _load_unlocked(self) -> list[Document]:
        return copy.deepcopy(self._docs)

    def _save_unlocked(self, docs: list[Document]) -> None:
        self._docs = copy.deepcopy(docs)


class JsonTaskStore(_DocumentTaskStore):
    """JSON-file backed task store."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> list[Document]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning(
                "Task state file is not valid JSON; treating as empty",
                extra={"path": str(self._path)},
            )
            return []
        if not isinstance(raw, list):
            logger.warning(
                "Task state file has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return []
        return [item for item in raw if isinstance(item, dict)]

    def _save_unlocked(self, docs: list[Document]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(docs, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
