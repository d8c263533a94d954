"""LLM package initialization."""

from team_workflow_orchestrator.llm.factory import LLMFactory
from team_workflow_orchestrator.llm.provider import LLMProvider

__all__ = [
    "LLMFactory",
    "LLMProvider",
]
