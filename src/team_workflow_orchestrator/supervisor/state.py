from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from team_workflow_orchestrator.core.errors import IllegalTransitionError
from team_workflow_orchestrator.state.store import utc_now
from team_workflow_orchestrator.teams.handler import Team


class InputKind(str, Enum):
    TRANSCRIPT = "transcript"
    MEETING_TRANSCRIPT = "meeting_transcript"
    EMAIL = "email"
    CALENDAR = "calendar"
    CALENDAR_WORKFLOW = "calendar_workflow"
    OTHER = "other"


KIND_TO_TEAM: dict[InputKind, Team] = {
    InputKind.TRANSCRIPT: Team.MEETING_ANALYSIS,
    InputKind.MEETING_TRANSCRIPT: Team.MEETING_ANALYSIS,
    InputKind.EMAIL: Team.EMAIL_TRIAGE,
    InputKind.CALENDAR: Team.CALENDAR_WORKFLOW,
    InputKind.CALENDAR_WORKFLOW: Team.CALENDAR_WORKFLOW,
}


def team_for_kind(kind: str | InputKind | None) -> Team:
    """Map an input kind (or a classifier's type string) to its team."""

    if kind is None:
        return Team.UNKNOWN
    try:
        return KIND_TO_TEAM.get(InputKind(kind), Team.UNKNOWN)
    except ValueError:
        return Team.UNKNOWN


class SupervisorStatus(str, Enum):
    PENDING = "pending"
    ROUTING = "routing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[SupervisorStatus, set[SupervisorStatus]] = {
    SupervisorStatus.PENDING: {SupervisorStatus.ROUTING, SupervisorStatus.FAILED},
    SupervisorStatus.ROUTING: {SupervisorStatus.PROCESSING, SupervisorStatus.FAILED},
    SupervisorStatus.PROCESSING: {SupervisorStatus.COMPLETED, SupervisorStatus.FAILED},
    SupervisorStatus.COMPLETED: set(),
    SupervisorStatus.FAILED: set(),
}


class SupervisorInput(BaseModel):
    """An input to route. Unknown fields are kept and passed on to the handler."""

    model_config = ConfigDict(extra="allow")

    type: InputKind | None = None
    content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_handler_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class RoutingDecision(BaseModel):
    team: str
    confidence: float = Field(ge=0.0, le=1.0)
    explanation: str | None = None


class StageError(BaseModel):
    message: str
    stage: str
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())


class SupervisorState(BaseModel):
    session_id: str
    user_id: str = "default"
    input: SupervisorInput
    routing: RoutingDecision | None = None
    results: Any = None
    status: SupervisorStatus = SupervisorStatus.PENDING
    error: StageError | None = None
    start_time: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]


def transition(state: SupervisorState, to: SupervisorStatus, **updates: Any) -> SupervisorState:
    """Return a copy of ``state`` moved to status ``to``.

    Raises:
        IllegalTransitionError: if the status table does not allow the move.
    """

    if to not in ALLOWED_TRANSITIONS[state.status]:
        raise IllegalTransitionError(f"Illegal transition: {state.status.value} -> {to.value}")
    return state.model_copy(update={"status": to, **updates})


def fail(state: SupervisorState, stage: str, exc: BaseException) -> SupervisorState:
    return transition(
        state,
        SupervisorStatus.FAILED,
        error=StageError(message=str(exc) or type(exc).__name__, stage=stage),
    )
