"""Conversational task orchestrator.

Drives multi-step workflows from chat turns:
- resolves the conversation's active task
- delegates each iteration to a function-calling agent
- validates the agent's reply and applies the resulting step transition
"""

__version__ = "0.1.0"

from task_orchestrator.orchestrator.manager import TaskManager, TaskManagerDeps
from task_orchestrator.orchestrator.models import TurnRequest, TurnResult

__all__ = ["__version__", "TaskManager", "TaskManagerDeps", "TurnRequest", "TurnResult"]
