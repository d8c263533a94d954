"""LLM provider interface used by input classification."""

from abc import ABC, abstractmethod
from typing import Any

ChatMessage = dict[str, str]


def system_message(content: str) -> ChatMessage:
    return {"role": "system", "content": content}


def user_message(content: str) -> ChatMessage:
    return {"role": "user", "content": content}


class LLMProvider(ABC):
    """A chat-completion backend.

    Implementations are async so that a slow model call never stalls other
    sessions sharing the event loop. Transport and API failures surface as
    :class:`~team_workflow_orchestrator.core.errors.LLMUnavailableError`.
    """

    model: str

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        **kwargs: Any,
    ) -> str:
        """Return the assistant reply to ``messages``.

        Args:
            messages: Conversation as ``{"role", "content"}`` dicts.
            max_tokens: Reply length cap; provider default when None.
            temperature: Overrides the configured temperature when set.
            json_mode: Ask the backend to constrain the reply to a JSON object.
            **kwargs: Backend-specific request options.
        """
