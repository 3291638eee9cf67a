"""OpenAI LLM provider implementation."""

import logging
from typing import Any

from openai import OpenAI

from task_orchestrator.core.config import LLMConfig
from task_orchestrator.llm.provider import ChatCompletion, LLMProvider, TokenCallback

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(self, config: LLMConfig, client: OpenAI | None = None) -> None:
        """Initialize the OpenAI provider.

        Args:
            config: LLM configuration.
            client: Pre-built client (tests, custom transports).

        Raises:
            ValueError: If API key is not provided.
        """
        if client is None and not config.openai_api_key:
            raise ValueError("OpenAI API key is required")

        self.config = config
        self.client = client or OpenAI(
            api_key=config.openai_api_key, base_url=config.openai_base_url
        )
        self.model = config.openai_model
        self.temperature = config.openai_temperature

        logger.info(f"OpenAI provider initialized with model: {self.model}")

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
        """Generate chat completion using OpenAI API.

        Streams when ``on_token`` is given; the returned completion always
        carries the full text.
        """
        temp = temperature if temperature is not None else self.temperature
        if json_output:
            kwargs.setdefault("response_format", {"type": "json_object"})

        logger.debug(f"Generating chat completion with {len(messages)} messages")

        if on_token is None:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore
                max_tokens=max_tokens,
                temperature=temp,
                **kwargs,
            )
            content = response.choices[0].message.content or ""
            tokens = response.usage.total_tokens if response.usage else None
        else:
            stream = self.client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore
                max_tokens=max_tokens,
                temperature=temp,
                stream=True,
                stream_options={"include_usage": True},
                **kwargs,
            )
            parts: list[str] = []
            tokens = None
            for chunk in stream:
                if chunk.usage is not None:
                    tokens = chunk.usage.total_tokens
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    on_token(delta)
            content = "".join(parts)

        logger.debug(f"Generated {len(content)} characters")

        return ChatCompletion(content=content, prompt=list(messages), tokens=tokens)
