"""Local LLaMA LLM provider implementation."""

import logging
from typing import Any

from task_orchestrator.core.config import LLMConfig
from task_orchestrator.llm.provider import ChatCompletion, LLMProvider, TokenCallback

logger = logging.getLogger(__name__)


def load_llama(config: LLMConfig) -> Any:
    """Load the GGUF model named by ``config.llama_model_path``.

    Raises:
        ValueError: If no model path is configured.
        ImportError: If llama-cpp-python is not installed.
    """
    if not config.llama_model_path:
        raise ValueError("LLaMA model path is required")

    try:
        from llama_cpp import Llama
    except ImportError as e:
        raise ImportError(
            "The llama provider needs llama-cpp-python: "
            'pip install "conversational-task-orchestrator[llama]"'
        ) from e

    logger.info("Loading LLaMA model", extra={"model_path": str(config.llama_model_path)})
    return Llama(
        model_path=str(config.llama_model_path),
        n_ctx=config.llama_n_ctx,
        n_threads=config.llama_n_threads,
        verbose=False,
    )


class LLaMAProvider(LLMProvider):
    """Chat completions from a local model through llama-cpp-python."""

    def __init__(self, config: LLMConfig, model: Any | None = None) -> None:
        """Initialize the provider, loading the model unless one is given.

        Args:
            config: LLM configuration.
            model: Already loaded ``llama_cpp.Llama`` (tests, shared models).
        """
        self.config = config
        self.llm = model if model is not None else load_llama(config)

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
        """Generate chat completion using local LLaMA model."""
        logger.debug(f"Generating chat completion with {len(messages)} messages")

        if json_output:
            kwargs.setdefault("response_format", {"type": "json_object"})

        if on_token is None:
            result = self.llm.create_chat_completion(
                messages=messages,
                max_tokens=max_tokens or 512,
                temperature=temperature or 0.7,
                **kwargs,
            )
            content = result["choices"][0]["message"]["content"] or ""
            tokens = result.get("usage", {}).get("total_tokens")
        else:
            parts: list[str] = []
            for chunk in self.llm.create_chat_completion(
                messages=messages,
                max_tokens=max_tokens or 512,
                temperature=temperature or 0.7,
                stream=True,
                **kwargs,
            ):
                delta = chunk["choices"][0]["delta"].get("content")
                if delta:
                    parts.append(delta)
                    on_token(delta)
            content = "".join(parts)
            tokens = None

        logger.debug(f"Generated {len(content)} characters")

        return ChatCompletion(content=content, prompt=list(messages), tokens=tokens)
