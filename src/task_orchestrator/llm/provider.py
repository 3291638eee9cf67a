"""Abstract base class for LLM providers."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

TokenCallback = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class ChatCompletion:
    """Result of a chat completion.

    Attributes:
        content: The assistant's reply text.
        prompt: The full message list sent to the model (system prompt included).
        tokens: Total tokens consumed, when the backend reports it.
    """

    content: str
    prompt: list[dict[str, Any]] = field(default_factory=list)
    tokens: int | None = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    This interface allows pluggable LLM backends (OpenAI, LLaMA, etc.)
    """

    @abstractmethod
    def chat(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        *,
        json_output: bool = False,
        on_token: TokenCallback | None = None,
        **kwargs: Any,
    ) -> ChatCompletion:
        """Generate a chat completion from messages.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            json_output: Ask the backend to return a single JSON object.
            on_token: Called with each text delta when streaming.
            **kwargs: Additional provider-specific parameters.

        Returns:
            The completion, including the prompt that produced it.
        """
        pass
