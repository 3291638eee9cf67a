"""Factory for creating LLM providers."""

import logging
from collections.abc import Callable

from task_orchestrator.core.config import LLMConfig
from task_orchestrator.llm.llama_provider import LLaMAProvider
from task_orchestrator.llm.openai_provider import OpenAIProvider
from task_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[LLMConfig], LLMProvider]


class LLMFactory:
    """Factory for creating LLM provider instances."""

    _builders: dict[str, ProviderBuilder] = {
        "openai": OpenAIProvider,
        "llama": LLaMAProvider,
    }

    @classmethod
    def create(cls, config: LLMConfig) -> LLMProvider:
        """Create the provider named by ``config.provider``.

        Raises:
            ValueError: If provider type is not supported.
        """
        builder = cls._builders.get(config.provider)
        if builder is None:
            raise ValueError(f"Unsupported LLM provider: {config.provider}")

        logger.info("Creating LLM provider", extra={"provider": config.provider})
        return builder(config)
