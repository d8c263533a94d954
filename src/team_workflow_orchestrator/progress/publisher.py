"""Progress tracking and telemetry.

Progress is advisory: updates are emitted to the event sink and mirrored to the
session store on a best-effort basis. Per session, published percentages never
go down until a terminal event evicts the session.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from team_workflow_orchestrator.state.store import SessionStore, utc_now
from team_workflow_orchestrator.workflow.events import EventSink
from team_workflow_orchestrator.workflow.graph import StateTransitionHook

logger = logging.getLogger(__name__)

PROGRESS_EVENT = "workflow.progress"

TERMINATED_HISTORY = 1024

ProgressStatus = Literal["pending", "in_progress", "completed", "failed"]


class WorkflowKind(str, Enum):
    SUPERVISOR = "supervisor"
    MEETING_ANALYSIS = "meeting_analysis"
    EMAIL_TRIAGE = "email_triage"
    CALENDAR = "calendar"


NODE_PROGRESS: dict[WorkflowKind, dict[str, int]] = {
    WorkflowKind.SUPERVISOR: {
        "initialization": 5,
        "routing": 15,
        "processing": 50,
        "finalization": 90,
    },
    WorkflowKind.MEETING_ANALYSIS: {
        "initialization": 10,
        "context_retrieval": 20,
        "topic_extraction": 40,
        "action_item_extraction": 60,
        "sentiment_analysis": 75,
        "summary_generation": 90,
        "document_storage": 95,
        "finalization": 100,
    },
    WorkflowKind.EMAIL_TRIAGE: {
        "initialization": 10,
        "classification": 40,
        "summarization": 70,
        "reply_draft": 90,
        "finalization": 100,
    },
    WorkflowKind.CALENDAR: {
        "pre_meeting_context": 10,
        "brief_generation": 40,
        "brief_delivery": 70,
        "completed": 100,
    },
}


class ProgressEvent(BaseModel):
    session_id: str
    phase: str
    percent: int = Field(ge=0, le=100)
    status: ProgressStatus
    message: str | None = None
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())


class ProgressPublisher:
    def __init__(
        self,
        events: EventSink,
        session_store: SessionStore | None = None,
        *,
        event_name: str = PROGRESS_EVENT,
    ) -> None:
        self._events = events
        self._store = session_store
        self._event_name = event_name
        self._progress: dict[str, int] = {}
        # Sessions whose window ended; late updates are dropped until the next init.
        self._terminated: OrderedDict[str, None] = OrderedDict()

    @staticmethod
    def calculate_progress_for_node(
        node_name: str, kind: WorkflowKind = WorkflowKind.SUPERVISOR
    ) -> int:
        return NODE_PROGRESS.get(kind, {}).get(node_name, 0)

    def current_progress(self, session_id: str) -> int | None:
        return self._progress.get(session_id)

    def tracked_sessions(self) -> list[str]:
        return list(self._progress)

    async def init_progress(
        self,
        session_id: str,
        message: str = "Starting workflow processing",
        *,
        percent: int = 0,
    ) -> ProgressEvent:
        """Open a tracking window for ``session_id`` starting at ``percent``."""

        self._terminated.pop(session_id, None)
        self._progress[session_id] = percent
        return await self._publish(
            ProgressEvent(
                session_id=session_id,
                phase="initialization",
                percent=percent,
                status="pending",
                message=message,
            )
        )

    async def update_progress(
        self,
        session_id: str,
        phase: str,
        percent: int,
        status: ProgressStatus = "in_progress",
        message: str | None = None,
    ) -> ProgressEvent | None:
        """Publish ``percent`` if it advances the session; return None otherwise.

        Updates for a session whose window was closed by a terminal event are
        dropped until :meth:`init_progress` is called again.
        """

        if session_id in self._terminated:
            logger.debug(
                "Ignoring progress update after terminal event",
                extra={"session_id": session_id, "percent": percent},
            )
            return None

        last = self._progress.get(session_id)
        if last is not None and percent <= last:
            logger.debug(
                "Ignoring non-increasing progress update",
                extra={"session_id": session_id, "percent": percent, "last": last},
            )
            return None

        self._progress[session_id] = percent
        return await self._publish(
            ProgressEvent(
                session_id=session_id,
                phase=phase,
                percent=percent,
                status=status,
                message=message,
            )
        )

    async def complete_progress(
        self,
        session_id: str,
        phase: str = "completion",
        message: str | None = "Workflow processing completed",
    ) -> ProgressEvent:
        self._close(session_id)
        return await self._publish(
            ProgressEvent(
                session_id=session_id,
                phase=phase,
                percent=100,
                status="completed",
                message=message,
            )
        )

    async def fail_progress(
        self, session_id: str, phase: str = "error", message: str | None = None
    ) -> ProgressEvent:
        last = self._close(session_id) or 0
        return await self._publish(
            ProgressEvent(
                session_id=session_id,
                phase=phase,
                percent=last,
                status="failed",
                message=message,
            )
        )

    def _close(self, session_id: str) -> int | None:
        last = self._progress.pop(session_id, None)
        self._terminated[session_id] = None
        self._terminated.move_to_end(session_id)
        while len(self._terminated) > TERMINATED_HISTORY:
            self._terminated.popitem(last=False)
        return last

    def graph_hook(self, kind: WorkflowKind = WorkflowKind.SUPERVISOR) -> StateTransitionHook[Any]:
        """Build a graph state-transition hook publishing per-node progress.

        The session id is read from the state (``state.session_id``) so a single
        graph can serve many sessions at once.
        """

        async def _hook(_prev: Any, new: Any, node_name: str) -> Any:
            session_id = getattr(new, "session_id", None)
            if session_id is None:
                return new
            percent = self.calculate_progress_for_node(node_name, kind)
            if percent > 0:
                await self.update_progress(
                    session_id,
                    node_name,
                    percent,
                    "in_progress",
                    f"Executing {node_name.replace('_', ' ')}",
                )
            return new

        return _hook

    async def _publish(self, event: ProgressEvent) -> ProgressEvent:
        await self._events.emit(self._event_name, event.model_dump())
        logger.debug(
            f"Published progress update: {event.percent}% ({event.phase})",
            extra={"session_id": event.session_id, "status": event.status},
        )
        await self._mirror(event)
        return event

    async def _mirror(self, event: ProgressEvent) -> None:
        if self._store is None:
            return
        try:
            await self._store.update(
                event.session_id, {"progress": event.percent, "status": event.status}
            )
        except Exception:
            logger.warning(
                "Failed to mirror progress to session store",
                exc_info=True,
                extra={"session_id": event.session_id},
            )
