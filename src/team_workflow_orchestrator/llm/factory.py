"""Build the configured LLM provider."""

import logging
from collections.abc import Callable

from team_workflow_orchestrator.core.config import LLMConfig
from team_workflow_orchestrator.llm.openai_provider import OpenAIProvider
from team_workflow_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[LLMConfig], LLMProvider]


class LLMFactory:
    _builders: dict[str, ProviderBuilder] = {"openai": OpenAIProvider}

    @classmethod
    def available_providers(cls) -> list[str]:
        return sorted(cls._builders)

    @classmethod
    def create(cls, config: LLMConfig) -> LLMProvider:
        """Instantiate the provider named by ``config.provider``.

        Raises:
            ValueError: If the provider name is unknown.
        """
        builder = cls._builders.get(config.provider)
        if builder is None:
            raise ValueError(
                f"Unsupported LLM provider: {config.provider} "
                f"(available: {', '.join(cls.available_providers())})"
            )
        logger.info(f"Creating LLM provider: {config.provider}")
        return builder(config)
