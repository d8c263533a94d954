"""Chat completions over the OpenAI API."""

import logging
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from team_workflow_orchestrator.core.config import LLMConfig
from team_workflow_orchestrator.core.errors import LLMUnavailableError
from team_workflow_orchestrator.llm.provider import ChatMessage, LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    def __init__(self, config: LLMConfig, client: AsyncOpenAI | None = None) -> None:
        """Create a provider from ``config``.

        Args:
            config: LLM configuration.
            client: Pre-built client; when omitted one is built from ``config``.

        Raises:
            ValueError: If no client is given and no API key is configured.
        """
        if client is None:
            if not config.openai_api_key:
                raise ValueError("OpenAI API key is required")
            client = AsyncOpenAI(
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
                timeout=config.request_timeout_seconds,
                max_retries=config.max_retries,
            )

        self.client = client
        self.model = config.openai_model
        self.default_temperature = config.openai_temperature

        logger.info("OpenAI provider ready", extra={"model": self.model})

    async def chat(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        **kwargs: Any,
    ) -> str:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.default_temperature if temperature is None else temperature,
            **kwargs,
        }
        if max_tokens is not None:
            request["max_tokens"] = max_tokens
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**request)
        except OpenAIError as e:
            logger.warning(f"OpenAI request failed: {e}", extra={"model": self.model})
            raise LLMUnavailableError(f"OpenAI request failed: {e}") from e

        if not response.choices:
            return ""
        reply = response.choices[0].message.content or ""
        logger.debug(
            "OpenAI reply received",
            extra={"model": self.model, "messages": len(messages), "chars": len(reply)},
        )
        return reply
