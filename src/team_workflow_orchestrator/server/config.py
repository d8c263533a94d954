"""Configuration for the REST server."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings for the REST API.

    Orchestration settings (LLM, store, workflow limits) live in
    :class:`team_workflow_orchestrator.core.config.OrchestratorConfig`.
    """

    # Dev-friendly CORS. Override via ORCHESTRATOR_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="ORCHESTRATOR_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )
    start_background_tasks: bool = Field(
        default=True,
        validation_alias="ORCHESTRATOR_START_BACKGROUND_TASKS",
        description="Run the completed-session cleanup sweep while the app is up.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
