"""Input classification for inputs that do not declare their kind."""

from __future__ import annotations

import json
import logging
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

from team_workflow_orchestrator.core.errors import RoutingAmbiguityError
from team_workflow_orchestrator.llm.provider import LLMProvider, system_message, user_message

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You route workplace inputs to the team that should process them."

CLASSIFICATION_PROMPT = """\
Please analyze the following content and determine what type of input it is.
Choose from one of the following types:
- meeting_transcript: A transcript of a meeting with multiple participants
- email: An email or similar written communication
- calendar: Calendar-related data, events, or scheduling information
- calendar_workflow: Calendar workflow processing requests
- other: None of the above

For your selection, provide a confidence score between 0.0 and 1.0, where 1.0 is completely certain.

Also provide a brief explanation for your decision (1-2 sentences).

Content:
{content}

Return your answer as a JSON object with the following properties:
- type: The selected type (one of the options above)
- confidence: A number between 0.0 and 1.0
- explanation: A brief explanation for your decision
"""


class Classification(BaseModel):
    type: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    explanation: str = "No explanation provided"


class InputClassifier(Protocol):
    async def classify(self, content: str) -> Classification: ...


def excerpt(content: str, limit: int = 1000) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


def parse_classification(raw: str) -> Classification:
    """Parse a structured classification reply.

    Raises:
        RoutingAmbiguityError: if the reply is not a JSON object with a ``type``.
    """

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RoutingAmbiguityError(f"Classification reply is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise RoutingAmbiguityError("Classification reply is not a JSON object")

    # Models sometimes send null for optional fields; fall back to defaults.
    cleaned = {key: value for key, value in data.items() if value is not None}
    try:
        return Classification.model_validate(cleaned)
    except ValidationError as e:
        raise RoutingAmbiguityError(f"Invalid classification reply: {e}") from e


class LLMInputClassifier:
    """Classify content with an LLM asked for a JSON object reply."""

    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def classify(self, content: str) -> Classification:
        messages = [
            system_message(SYSTEM_PROMPT),
            user_message(CLASSIFICATION_PROMPT.format(content=content)),
        ]
        reply = await self.llm.chat(messages, json_mode=True)
        classification = parse_classification(reply)
        logger.debug(
            "Classified input",
            extra={"type": classification.type, "confidence": classification.confidence},
        )
        return classification
