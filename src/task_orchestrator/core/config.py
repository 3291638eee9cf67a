"""Core configuration for the task orchestrator."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from task_orchestrator.orchestrator.logging import configure_logging


class LLMConfig(BaseSettings):
    """Configuration for LLM providers."""

    provider: Literal["openai", "llama"] = Field(
        default="openai",
        description="LLM provider to use",
    )

    # OpenAI settings
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Alternative OpenAI-compatible endpoint",
    )

    # LLaMA settings
    llama_model_path: Path | None = Field(
        default=None,
        description="Path to LLaMA model file",
    )
    llama_n_ctx: int = Field(
        default=4096,
        gt=0,
        description="Context window size for LLaMA",
    )
    llama_n_threads: int | None = Field(
        default=None,
        description="Number of threads for LLaMA (None = auto)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_LLM_",
        env_file=".env",
        extra="ignore",
    )


class StateConfig(BaseSettings):
    """Configuration for task and turn persistence."""

    storage_path: Path = Field(
        default=Path(".state"),
        description="Directory holding tasks.json and turns.json",
    )
    definitions_path: Path = Field(
        default=Path("workflows.json"),
        description="JSON file with copilot, job and workflow definitions",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_STATE_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def tasks_file(self) -> Path:
        return self.storage_path / "tasks.json"

    @property
    def turns_file(self) -> Path:
        return self.storage_path / "turns.json"


class TaskManagerConfig(BaseSettings):
    """Configuration for the task manager loop."""

    max_iterations: int = Field(
        default=3,
        ge=0,
        description="Maximum number of follow-up iterations within one turn",
    )
    history_max_retries: int = Field(
        default=10,
        gt=0,
        description="Attempts when reading the thread history",
    )
    history_retry_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Base wait (exponential backoff) between history attempts",
    )
    agent_type: str = Field(
        default="taskManager",
        description="Agent type recorded with each turn",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_TASKS_",
        env_file=".env",
        extra="ignore",
    )


class OrchestratorConfig(BaseSettings):
    """Main configuration for the orchestrator."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM configuration",
    )
    state: StateConfig = Field(
        default_factory=StateConfig,
        description="State configuration",
    )
    tasks: TaskManagerConfig = Field(
        default_factory=TaskManagerConfig,
        description="Task manager configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure structured logging based on settings."""
        configure_logging("DEBUG" if self.debug else self.log_level)
