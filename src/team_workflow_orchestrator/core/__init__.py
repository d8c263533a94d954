"""Core package initialization."""

from team_workflow_orchestrator.core.config import (
    LLMConfig,
    OrchestratorConfig,
    SessionStoreConfig,
    WorkflowConfig,
)

__all__ = [
    "LLMConfig",
    "OrchestratorConfig",
    "SessionStoreConfig",
    "WorkflowConfig",
]
