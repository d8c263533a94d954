"""Supervisor service: single-shot routing of one input to one team."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from team_workflow_orchestrator.core.config import WorkflowConfig
from team_workflow_orchestrator.core.errors import InputValidationError, SessionNotFoundError
from team_workflow_orchestrator.progress.publisher import ProgressPublisher, WorkflowKind
from team_workflow_orchestrator.state.store import SessionRecord, SessionStore, utc_now
from team_workflow_orchestrator.teams.registry import TeamHandlerRegistry
from team_workflow_orchestrator.workflow.graph import WorkflowGraph

from .classifier import InputClassifier
from .graph_builder import SupervisorGraphBuilder
from .state import RoutingDecision, StageError, SupervisorInput, SupervisorState, SupervisorStatus

logger = logging.getLogger(__name__)


class WorkflowResults(BaseModel):
    session_id: str
    status: str
    progress: int = 0
    routing: RoutingDecision | None = None
    results: Any = None
    error: StageError | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


def _validate_input(
    input: Mapping[str, Any] | SupervisorInput, metadata: Mapping[str, Any] | None
) -> SupervisorInput:
    try:
        model = (
            input.model_copy(deep=True)
            if isinstance(input, SupervisorInput)
            else SupervisorInput.model_validate(input)
        )
    except ValidationError as e:
        raise InputValidationError(f"Malformed input: {e}") from e

    if not model.content.strip() and not model.model_extra:
        raise InputValidationError("Input is empty")

    if metadata:
        model.metadata = {**model.metadata, **metadata}
    return model


class SupervisorService:
    """Route inputs through the supervisor graph and track them as sessions.

    The graph is built once; each call threads its own :class:`SupervisorState`.
    Session-store failures are logged and never fail the request.
    """

    def __init__(
        self,
        registry: TeamHandlerRegistry,
        session_store: SessionStore,
        progress: ProgressPublisher,
        classifier: InputClassifier | None = None,
        config: WorkflowConfig | None = None,
    ) -> None:
        self.config = config or WorkflowConfig()
        self.store = session_store
        self.progress = progress
        self.graph: WorkflowGraph[SupervisorState] = SupervisorGraphBuilder(
            registry,
            classifier,
            excerpt_chars=self.config.classification_excerpt_chars,
            low_confidence_threshold=self.config.low_confidence_threshold,
        ).build_graph()
        self.graph.add_state_transition_hook(progress.graph_hook(WorkflowKind.SUPERVISOR))

    async def process_input(
        self,
        input: Mapping[str, Any] | SupervisorInput,
        metadata: Mapping[str, Any] | None = None,
        user_id: str | None = None,
    ) -> WorkflowResults:
        model = _validate_input(input, metadata)
        session_id = f"session-{uuid.uuid4().hex}"
        user = user_id or "default"
        created_at = utc_now()

        await self._create_session(
            SessionRecord(
                session_id=session_id,
                user_id=user,
                kind="supervisor",
                input_type=model.type.value if model.type else None,
                input=model.to_handler_payload(),
                metadata=dict(model.metadata),
                created_at=created_at,
            )
        )
        await self.progress.init_progress(session_id)

        state = SupervisorState(session_id=session_id, user_id=user, input=model)
        try:
            final = await self.graph.execute(state)
        except Exception as e:
            logger.error(f"Error processing input: {e}", extra={"session_id": session_id})
            error = StageError(message=str(e), stage="graph")
            await self.progress.fail_progress(session_id, message=f"Error: {e}")
            await self._update_session(
                session_id,
                {"status": "failed", "error": error.model_dump(), "completed_at": utc_now()},
            )
            raise

        completed_at = utc_now()
        routing = final.routing.model_dump() if final.routing else None
        if final.status == SupervisorStatus.COMPLETED:
            await self.progress.complete_progress(session_id)
            await self._update_session(
                session_id,
                {
                    "status": "completed",
                    "stage": "finalization",
                    "progress": 100,
                    "results": final.results,
                    "metadata": {**model.metadata, "routing": routing},
                    "completed_at": completed_at,
                },
            )
            progress = 100
        else:
            error = final.error or StageError(message="Workflow did not complete", stage="unknown")
            await self.progress.fail_progress(
                session_id, phase=error.stage, message=f"Error: {error.message}"
            )
            await self._update_session(
                session_id,
                {
                    "status": "failed",
                    "stage": error.stage,
                    "error": error.model_dump(),
                    "metadata": {**model.metadata, "routing": routing},
                    "completed_at": completed_at,
                },
            )
            progress = 0

        return WorkflowResults(
            session_id=session_id,
            status=final.status.value if final.is_terminal else SupervisorStatus.FAILED.value,
            progress=progress,
            routing=final.routing,
            results=final.results if final.status == SupervisorStatus.COMPLETED else None,
            error=final.error,
            created_at=created_at,
            completed_at=completed_at,
        )

    async def get_results(self, session_id: str, user_id: str | None = None) -> WorkflowResults:
        logger.info("Retrieving workflow results", extra={"session_id": session_id})

        record = await self.store.get_by_id(session_id)
        if record is None or record.kind != "supervisor":
            raise SessionNotFoundError(session_id)
        if user_id is not None and record.user_id != user_id:
            raise SessionNotFoundError(session_id)

        routing = record.metadata.get("routing")
        return WorkflowResults(
            session_id=record.session_id,
            status=record.status,
            progress=record.progress,
            routing=RoutingDecision.model_validate(routing) if routing else None,
            results=record.results if record.status == "completed" else None,
            error=StageError.model_validate(record.error) if record.error else None,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )

    async def _create_session(self, record: SessionRecord) -> None:
        try:
            await self.store.create(record)
        except Exception:
            logger.error(
                "Failed to create session", exc_info=True, extra={"session_id": record.session_id}
            )

    async def _update_session(self, session_id: str, fields: Mapping[str, Any]) -> None:
        try:
            await self.store.update(session_id, fields)
        except Exception:
            logger.error(
                "Failed to update session", exc_info=True, extra={"session_id": session_id}
            )
