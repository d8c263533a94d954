"""Process bootstrap: wire the orchestration core into one runtime."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from team_workflow_orchestrator.core.config import OrchestratorConfig, SessionStoreConfig
from team_workflow_orchestrator.llm.factory import LLMFactory
from team_workflow_orchestrator.master.orchestrator import MasterOrchestrator
from team_workflow_orchestrator.progress.publisher import ProgressPublisher
from team_workflow_orchestrator.scheduling.periodic import (
    CleanupSweeper,
    RecordingAvailabilityWatcher,
)
from team_workflow_orchestrator.state.store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionStore,
)
from team_workflow_orchestrator.supervisor.classifier import InputClassifier, LLMInputClassifier
from team_workflow_orchestrator.supervisor.service import SupervisorService
from team_workflow_orchestrator.teams.registry import TeamHandlerRegistry, get_default_registry
from team_workflow_orchestrator.workflow.events import EventBus

logger = logging.getLogger(__name__)


@dataclass
class OrchestrationRuntime:
    config: OrchestratorConfig
    registry: TeamHandlerRegistry
    events: EventBus
    store: SessionStore
    progress: ProgressPublisher
    supervisor: SupervisorService
    master: MasterOrchestrator
    cleanup: CleanupSweeper
    recordings: RecordingAvailabilityWatcher

    def start_background_tasks(self) -> None:
        """Start the periodic cleanup sweep. Requires a running event loop."""

        if not self.cleanup.task.running:
            self.cleanup.start()

    async def shutdown(self) -> None:
        await self.cleanup.stop()
        await self.recordings.stop_all()
        logger.info("Orchestration runtime stopped")


def build_session_store(config: SessionStoreConfig) -> SessionStore:
    if config.backend == "json":
        return JsonFileSessionStore(config.path)
    return InMemorySessionStore()


def build_classifier(config: OrchestratorConfig) -> InputClassifier | None:
    if not config.llm.openai_api_key:
        logger.warning("No LLM API key configured; ambiguous inputs route to 'unknown'")
        return None
    return LLMInputClassifier(LLMFactory.create(config.llm))


def build_runtime(
    config: OrchestratorConfig | None = None,
    registry: TeamHandlerRegistry | None = None,
    classifier: InputClassifier | None = None,
    store: SessionStore | None = None,
) -> OrchestrationRuntime:
    """Build every collaborator of the orchestration core.

    Args:
        config: Configuration. If None, loads from environment.
        registry: Handler registry. Defaults to the process-wide registry.
        classifier: Input classifier. Built from the LLM config when omitted.
        store: Session store. Built from the store config when omitted.
    """

    config = config or OrchestratorConfig()
    registry = registry if registry is not None else get_default_registry()
    classifier = classifier if classifier is not None else build_classifier(config)
    store = store if store is not None else build_session_store(config.store)

    events = EventBus()
    progress = ProgressPublisher(events, store)
    workflow = config.workflow

    supervisor = SupervisorService(registry, store, progress, classifier, workflow)
    master = MasterOrchestrator(registry, events, store, progress, workflow)
    cleanup = CleanupSweeper(
        master,
        ttl=timedelta(hours=workflow.session_ttl_hours),
        interval_seconds=workflow.cleanup_interval_seconds,
    )
    recordings = RecordingAvailabilityWatcher(
        master,
        interval_seconds=workflow.recording_check_interval_seconds,
        max_attempts=workflow.recording_check_max_attempts,
    )

    logger.info(
        "Orchestration runtime initialized",
        extra={"store": config.store.backend, "teams": registry.get_all_team_names()},
    )
    return OrchestrationRuntime(
        config=config,
        registry=registry,
        events=events,
        store=store,
        progress=progress,
        supervisor=supervisor,
        master=master,
        cleanup=cleanup,
        recordings=recordings,
    )
