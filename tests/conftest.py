"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pytest

from team_workflow_orchestrator.core.config import (
    LLMConfig,
    OrchestratorConfig,
    SessionStoreConfig,
    WorkflowConfig,
)
from team_workflow_orchestrator.progress.publisher import ProgressPublisher
from team_workflow_orchestrator.state.store import InMemorySessionStore
from team_workflow_orchestrator.teams.registry import TeamHandlerRegistry, reset_default_registry


class RecordingEventSink:
    """Event sink collecting every emitted event in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))

    def named(self, name: str) -> list[dict[str, Any]]:
        return [payload for event, payload in self.events if event == name]


class StubHandler:
    """Team handler returning a fixed result (or raising) and recording inputs."""

    def __init__(
        self,
        team: str,
        result: Any = None,
        *,
        error: Exception | None = None,
        accepts: Any = None,
    ) -> None:
        self.team = team
        self.result = result if result is not None else {"handled_by": team}
        self.error = error
        self.inputs: list[dict[str, Any]] = []
        if accepts is not None:
            self.accepts = accepts

    async def process(self, input: dict[str, Any]) -> Any:
        self.inputs.append(input)
        if self.error is not None:
            raise self.error
        return self.result

    def get_team_name(self) -> str:
        return self.team

    async def can_handle(self, input: Any) -> bool:
        accepts = getattr(self, "accepts", None)
        return bool(accepts(input)) if accepts is not None else False


@pytest.fixture(autouse=True)
def _fresh_default_registry():
    reset_default_registry()
    yield
    reset_default_registry()


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def registry() -> TeamHandlerRegistry:
    return TeamHandlerRegistry()


@pytest.fixture
def progress(events: RecordingEventSink, store: InMemorySessionStore) -> ProgressPublisher:
    return ProgressPublisher(events, store)


@pytest.fixture
def workflow_config() -> WorkflowConfig:
    return WorkflowConfig()


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / ".state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )


@pytest.fixture
def orchestrator_config(llm_config: LLMConfig, temp_state_dir: Path) -> OrchestratorConfig:
    """Provide a test orchestrator configuration."""
    return OrchestratorConfig(
        log_level="DEBUG",
        debug=True,
        json_logs=False,
        llm=llm_config,
        store=SessionStoreConfig(backend="json", path=temp_state_dir / "sessions.json"),
    )


@pytest.fixture
def make_handler() -> type[StubHandler]:
    return StubHandler
