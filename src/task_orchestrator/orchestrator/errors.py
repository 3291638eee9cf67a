"""Exception types raised by the task orchestrator.

Configuration and lookup errors propagate out of action invocations.
Validation and persistence problems are handled inside the task manager.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    pass


class ConfigurationError(OrchestratorError):
    """An action was wired or invoked incorrectly (bad module URL, missing argument)."""


class LookupFailure(OrchestratorError):
    pass


class WorkflowNotFound(LookupFailure):
    pass


class StepNotFound(LookupFailure):
    pass


class TaskNotFound(LookupFailure):
    pass


class SchemaValidationError(OrchestratorError, ValueError):
    """The candidate object does not satisfy the output schema."""

    def __init__(self, message: str, *, path: str = "$") -> None:
        super().__init__(message)
        self.path = path


class HistoryUnavailable(OrchestratorError):
    """Thread history could not be read (transient, retried)."""


class ActiveTaskExists(OrchestratorError):
    """Raised when a conversation already has an active task."""

    def __init__(self, ext_id: str, task_id: str) -> None:
        super().__init__(ext_id, task_id)
        self.ext_id = ext_id
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Conversation {self.ext_id!r} already has an active task: {self.task_id}"
