"""Conversation history.

Each finished turn is logged per conversation and agent type. The task manager
only needs the last logged turn: its ``prompt`` (the message list sent to the
model) plus the agent response, which together rebuild the history after a
process restart.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Protocol

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from task_orchestrator.orchestrator.errors import HistoryUnavailable
from task_orchestrator.orchestrator.models import utc_now_iso

logger = logging.getLogger(__name__)


class TurnLogSource(Protocol):
    def last(self, ext_id: str, function_name: str) -> dict[str, Any] | None: ...


class TurnLogStore:
    """JSON-file backed log of finished turns."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def _load_unlocked(self, *, set_aside: bool = False) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            # Not retried: the file stays corrupt until the next append moves it aside.
            if not set_aside:
                logger.warning(
                    "Turn log is not valid JSON; treating as empty",
                    extra={"path": str(self._path)},
                )
                return []
            backup = self._path.with_name(self._path.name + ".corrupt")
            self._path.replace(backup)
            logger.warning(
                "Turn log is not valid JSON; moved aside and starting a new one",
                extra={"path": str(self._path), "backup": str(backup)},
            )
            return []
        if not isinstance(raw, list):
            return []
        return [item for item in raw if isinstance(item, dict)]

    def append(self, ext_id: str, function_name: str, entry: dict[str, Any]) -> None:
        with self._lock:
            logs = self._load_unlocked(set_aside=True)
            logs.append(
                {
                    "ext_id": ext_id,
                    "function_name": function_name,
                    "created_at": utc_now_iso(),
                    "entry": entry,
                }
            )
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(logs, indent=2, ensure_ascii=False, default=str) + "\n",
                encoding="utf-8",
            )

    def last(self, ext_id: str, function_name: str) -> dict[str, Any] | None:
        with self._lock:
            logs = self._load_unlocked()
        for item in reversed(logs):
            if item.get("ext_id") == ext_id and item.get("function_name") == function_name:
                entry = item.get("entry")
                return entry if isinstance(entry, dict) else None
        return None


class ThreadHistory:
    """Reads the last logged turn with bounded retries."""

    def __init__(self, source: TurnLogSource, *, wait_seconds: float = 0.5) -> None:
        self._source = source
        self._wait_seconds = wait_seconds

    def get_thread_history(
        self, ext_id: str, *, function_name: str, max_retries: int = 10
    ) -> dict[str, Any] | None:
        retrying = Retrying(
            stop=stop_after_attempt(max(1, max_retries)),
            wait=wait_exponential(multiplier=self._wait_seconds, max=10),
            retry=retry_if_exception_type((HistoryUnavailable, OSError)),
            before_sleep=lambda state: logger.warning(
                "Retrying thread history",
                extra={"ext_id": ext_id, "attempt": state.attempt_number},
            ),
            reraise=True,
        )
        return retrying(self._source.last, ext_id, function_name)
