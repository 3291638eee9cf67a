"""Unit tests for the turn log and thread history retries."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest

from task_orchestrator.orchestrator.errors import HistoryUnavailable
from task_orchestrator.orchestrator.history import ThreadHistory, TurnLogStore


def test_turn_log_returns_last_entry_per_agent_type(tmp_path: Path) -> None:
    log = TurnLogStore(tmp_path / "turns.json")
    log.append("c1", "taskManager", {"message": "first"})
    log.append("c1", "taskManager", {"message": "second"})
    log.append("c1", "other", {"message": "other"})
    log.append("c2", "taskManager", {"message": "elsewhere"})

    assert log.last("c1", "taskManager") == {"message": "second"}
    assert log.last("c1", "other") == {"message": "other"}
    assert log.last("c3", "taskManager") is None


def test_turn_log_missing_file_is_empty(tmp_path: Path) -> None:
    assert TurnLogStore(tmp_path / "none.json").last("c1", "taskManager") is None


def test_turn_log_corrupt_file_reads_as_empty_without_retries(tmp_path: Path) -> None:
    path = tmp_path / "turns.json"
    path.write_text("{not json", encoding="utf-8")
    source = Mock(wraps=TurnLogStore(path))

    history = ThreadHistory(source, wait_seconds=0)
    result = history.get_thread_history("c1", function_name="taskManager", max_retries=10)

    assert result is None
    assert source.last.call_count == 1


def test_turn_log_append_sets_corrupt_file_aside(tmp_path: Path) -> None:
    path = tmp_path / "turns.json"
    path.write_text("{not json", encoding="utf-8")
    log = TurnLogStore(path)

    log.append("c1", "taskManager", {"message": "fresh"})

    assert log.last("c1", "taskManager") == {"message": "fresh"}
    assert (tmp_path / "turns.json.corrupt").read_text(encoding="utf-8") == "{not json"


def test_history_retries_transient_failures() -> None:
    source = Mock()
    source.last.side_effect = [HistoryUnavailable("busy"), OSError("io"), {"message": "hi"}]

    history = ThreadHistory(source, wait_seconds=0)
    result = history.get_thread_history("c1", function_name="taskManager", max_retries=5)

    assert result == {"message": "hi"}
    assert source.last.call_count == 3
    source.last.assert_called_with("c1", "taskManager")


def test_history_gives_up_after_max_retries() -> None:
    source = Mock()
    source.last.side_effect = HistoryUnavailable("down")

    history = ThreadHistory(source, wait_seconds=0)
    with pytest.raises(HistoryUnavailable):
        history.get_thread_history("c1", function_name="taskManager", max_retries=3)

    assert source.last.call_count == 3


def test_history_does_not_retry_other_errors() -> None:
    source = Mock()
    source.last.side_effect = KeyError("bug")

    with pytest.raises(KeyError):
        ThreadHistory(source, wait_seconds=0).get_thread_history("c1", function_name="taskManager")

    assert source.last.call_count == 1
