from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from team_workflow_orchestrator.core.errors import RoutingAmbiguityError
from team_workflow_orchestrator.llm.provider import LLMProvider
from team_workflow_orchestrator.supervisor.classifier import (
    LLMInputClassifier,
    excerpt,
    parse_classification,
)


def test_excerpt_truncates_with_ellipsis() -> None:
    assert excerpt("short", 10) == "short"
    assert excerpt("x" * 1500) == "x" * 1000 + "..."


def test_parse_classification_defaults_missing_fields() -> None:
    parsed = parse_classification(json.dumps({"type": "email", "confidence": None}))

    assert parsed.type == "email"
    assert parsed.confidence == 0.5
    assert parsed.explanation == "No explanation provided"


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        json.dumps(["email"]),
        json.dumps({"confidence": 0.9}),
        json.dumps({"type": "email", "confidence": 7}),
    ],
)
def test_parse_classification_rejects_unusable_replies(raw: str) -> None:
    with pytest.raises(RoutingAmbiguityError):
        parse_classification(raw)


@pytest.mark.asyncio
async def test_llm_classifier_requests_json_object() -> None:
    llm = AsyncMock(spec=LLMProvider)
    llm.chat.return_value = json.dumps(
        {"type": "calendar", "confidence": 0.8, "explanation": "Has a start time"}
    )

    result = await LLMInputClassifier(llm).classify("Team sync at 10am")

    assert result.type == "calendar"
    assert result.confidence == 0.8
    messages = llm.chat.await_args.args[0]
    assert "Team sync at 10am" in messages[1]["content"]
    assert messages[0]["role"] == "system"
    assert llm.chat.await_args.kwargs["json_mode"] is True
