"""Core package initialization."""

from task_orchestrator.core.config import (
    LLMConfig,
    OrchestratorConfig,
    StateConfig,
    TaskManagerConfig,
)

__all__ = [
    "LLMConfig",
    "OrchestratorConfig",
    "StateConfig",
    "TaskManagerConfig",
]
