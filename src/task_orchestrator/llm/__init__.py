"""LLM providers used by the function-call agent."""

from task_orchestrator.llm.factory import LLMFactory
from task_orchestrator.llm.provider import ChatCompletion, LLMProvider

__all__ = [
    "ChatCompletion",
    "LLMFactory",
    "LLMProvider",
]
