"""Core configuration for the orchestrator."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from team_workflow_orchestrator.core.logging import configure_logging


class LLMConfig(BaseSettings):
    """Configuration for the LLM provider used by input classification."""

    provider: Literal["openai"] = Field(
        default="openai",
        description="LLM provider to use",
    )

    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key. Classification is disabled when unset.",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Alternative OpenAI-compatible endpoint",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout for classification calls",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Client-side retries on transient API errors",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_LLM_",
        env_file=".env",
        extra="ignore",
    )


class SessionStoreConfig(BaseSettings):
    """Configuration for session persistence."""

    backend: Literal["memory", "json"] = Field(
        default="memory",
        description="Session store backend",
    )
    path: Path = Field(
        default=Path(".state/sessions.json"),
        description="File used by the json backend",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_STORE_",
        env_file=".env",
        extra="ignore",
    )


class WorkflowConfig(BaseSettings):
    """Limits and timings for supervisor and master workflows."""

    max_iterations: int = Field(
        default=10,
        gt=0,
        description="Upper bound on phase executions per master orchestration run",
    )
    max_retries: int = Field(
        default=3,
        gt=0,
        description="Phase failures tolerated before manual intervention is required",
    )
    classification_excerpt_chars: int = Field(
        default=1000,
        gt=0,
        description="Characters of content sent to the classifier",
    )
    low_confidence_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Routing decisions below this confidence are logged as ambiguous",
    )
    session_ttl_hours: float = Field(
        default=24.0,
        gt=0,
        description="Age after which completed master sessions are evicted",
    )
    cleanup_interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Interval of the completed-session cleanup sweep",
    )
    recording_check_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Interval between recording availability checks",
    )
    recording_check_max_attempts: int = Field(
        default=12,
        gt=0,
        description="Recording availability checks before giving up",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_WORKFLOW_",
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
    json_logs: bool = Field(
        default=True,
        description="Emit structured JSON log lines",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM configuration",
    )
    store: SessionStoreConfig = Field(
        default_factory=SessionStoreConfig,
        description="Session store configuration",
    )
    workflow: WorkflowConfig = Field(
        default_factory=WorkflowConfig,
        description="Workflow limits and timings",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(self.log_level, json_format=self.json_logs)

        if self.debug:
            logging.getLogger("team_workflow_orchestrator").setLevel(logging.DEBUG)
