from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from team_workflow_orchestrator.state.store import utc_now
from team_workflow_orchestrator.supervisor.state import StageError
from team_workflow_orchestrator.teams.handler import Team


class Phase(str, Enum):
    CALENDAR = "calendar"
    MEETING = "meeting"
    EMAIL = "email"
    COMPLETED = "completed"


# Phases that run a team; COMPLETED is the terminal marker.
WORK_PHASES: tuple[Phase, ...] = (Phase.CALENDAR, Phase.MEETING, Phase.EMAIL)

PHASE_TEAMS: dict[Phase, Team] = {
    Phase.CALENDAR: Team.CALENDAR_WORKFLOW,
    Phase.MEETING: Team.MEETING_ANALYSIS,
    Phase.EMAIL: Team.EMAIL_TRIAGE,
}


class TriggerType(str, Enum):
    CALENDAR_EVENT_CREATED = "calendar_event_created"
    MEETING_ENDED = "meeting_ended"
    EMAIL_RECEIVED = "email_received"
    MANUAL = "manual"


class MasterStatus(str, Enum):
    RUNNING = "running"
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


MANUAL_INTERVENTION = "manual_intervention_required"
RETRY_CURRENT_PHASE = "retry_current_phase"


class WorkflowTrigger(BaseModel):
    """An external fact that starts a master workflow."""

    type: TriggerType
    data: dict[str, Any] = Field(default_factory=dict)
    source: str | None = None
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())


class MasterWorkflowState(BaseModel):
    master_session_id: str
    user_id: str = "default"
    triggering_event: WorkflowTrigger

    active_workflows: dict[str, str] = Field(default_factory=dict)
    current_phase: Phase
    completed_phases: list[Phase] = Field(default_factory=list)

    retry_count: int = 0
    fallback_strategy: str | None = None
    error: StageError | None = None

    stage: str = "initialized"
    status: MasterStatus = MasterStatus.RUNNING
    progress: int = 0

    calendar_event: dict[str, Any] | None = None
    meeting_transcript: str | None = None
    analysis_results: dict[str, Any] | None = None
    follow_up_actions: list[Any] = Field(default_factory=list)
    workspace_data: dict[str, Any] = Field(default_factory=dict)

    start_time: datetime = Field(default_factory=utc_now)
    end_time: datetime | None = None
    updated_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_finished(self) -> bool:
        return self.status in (MasterStatus.COMPLETED, MasterStatus.CANCELLED)


def advance(state: MasterWorkflowState, to_phase: Phase) -> MasterWorkflowState:
    """Return a copy of ``state`` moved from its current phase to ``to_phase``."""

    completed = list(state.completed_phases)
    if state.current_phase not in completed:
        completed.append(state.current_phase)
    return state.model_copy(
        update={
            "current_phase": to_phase,
            "completed_phases": completed,
            "progress": round(100 * len(completed) / len(WORK_PHASES)),
            "updated_at": utc_now(),
        }
    )


def determine_starting_phase(trigger: WorkflowTrigger) -> Phase:
    if trigger.type == TriggerType.MEETING_ENDED:
        transcript = trigger.data.get("transcript")
        if isinstance(transcript, str) and transcript.strip():
            return Phase.MEETING
        return Phase.CALENDAR
    if trigger.type == TriggerType.EMAIL_RECEIVED:
        return Phase.EMAIL
    return Phase.CALENDAR
