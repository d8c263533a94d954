"""Transition rules between master workflow phases.

Rules are plain values kept in declaration order. Only rules whose
``from_phase`` is the active phase are considered, and the first one whose
guard holds wins. A workflow with no satisfied rule waits for an external event.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from team_workflow_orchestrator.state.store import utc_now
from team_workflow_orchestrator.workflow.events import EventSink

from .state import MasterStatus, MasterWorkflowState, Phase

logger = logging.getLogger(__name__)

Guard = Callable[[MasterWorkflowState], bool]
TransitionAction = Callable[[MasterWorkflowState, EventSink], Awaitable[MasterWorkflowState]]

MEETING_ANALYSIS_TRIGGERED = "master.workflow.meeting_analysis_triggered"
EMAIL_GENERATION_TRIGGERED = "master.workflow.email_generation_triggered"
WORKFLOW_COMPLETED = "master.workflow.completed"
PHASE_TRANSITION = "master.workflow.phase_transition"


@dataclass(frozen=True, slots=True)
class TransitionRule:
    name: str
    from_phase: Phase
    to_phase: Phase
    guard: Guard
    action: TransitionAction

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "from_phase": self.from_phase.value,
            "to_phase": self.to_phase.value,
            "guard": getattr(self.guard, "__name__", repr(self.guard)),
            "action": getattr(self.action, "__name__", repr(self.action)),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def has_transcript(state: MasterWorkflowState) -> bool:
    return bool(state.meeting_transcript and state.meeting_transcript.strip())


def has_action_items(state: MasterWorkflowState) -> bool:
    items = (state.analysis_results or {}).get("action_items")
    return bool(items)


def has_follow_ups(state: MasterWorkflowState) -> bool:
    return bool(state.follow_up_actions)


async def trigger_meeting_analysis(
    state: MasterWorkflowState, events: EventSink
) -> MasterWorkflowState:
    logger.info(
        "Triggering meeting analysis transition",
        extra={"master_session_id": state.master_session_id},
    )
    await events.emit(
        MEETING_ANALYSIS_TRIGGERED,
        {
            "master_session_id": state.master_session_id,
            "calendar_session_id": state.active_workflows.get(Phase.CALENDAR.value),
            "transcript": state.meeting_transcript,
        },
    )
    return state


async def trigger_email_generation(
    state: MasterWorkflowState, events: EventSink
) -> MasterWorkflowState:
    logger.info(
        "Triggering email generation transition",
        extra={"master_session_id": state.master_session_id},
    )
    await events.emit(
        EMAIL_GENERATION_TRIGGERED,
        {
            "master_session_id": state.master_session_id,
            "meeting_session_id": state.active_workflows.get(Phase.MEETING.value),
            "action_items": (state.analysis_results or {}).get("action_items"),
        },
    )
    return state


async def complete_workflow(state: MasterWorkflowState, events: EventSink) -> MasterWorkflowState:
    logger.info(
        "Completing master workflow", extra={"master_session_id": state.master_session_id}
    )
    now = utc_now()
    completed = state.model_copy(
        update={
            "stage": "completed",
            "status": MasterStatus.COMPLETED,
            "progress": 100,
            "end_time": now,
            "updated_at": now,
        }
    )
    await events.emit(
        WORKFLOW_COMPLETED,
        {
            "master_session_id": completed.master_session_id,
            "completed_phases": [p.value for p in completed.completed_phases],
            "follow_up_count": len(completed.follow_up_actions),
            "total_duration_seconds": (now - completed.start_time).total_seconds(),
        },
    )
    return completed


DEFAULT_TRANSITIONS: tuple[TransitionRule, ...] = (
    TransitionRule(
        name="calendar_to_meeting",
        from_phase=Phase.CALENDAR,
        to_phase=Phase.MEETING,
        guard=has_transcript,
        action=trigger_meeting_analysis,
    ),
    TransitionRule(
        name="meeting_to_email",
        from_phase=Phase.MEETING,
        to_phase=Phase.EMAIL,
        guard=has_action_items,
        action=trigger_email_generation,
    ),
    TransitionRule(
        name="email_to_completed",
        from_phase=Phase.EMAIL,
        to_phase=Phase.COMPLETED,
        guard=has_follow_ups,
        action=complete_workflow,
    ),
)


def find_applicable_transition(
    state: MasterWorkflowState, rules: Sequence[TransitionRule] = DEFAULT_TRANSITIONS
) -> TransitionRule | None:
    for rule in rules:
        if rule.from_phase == state.current_phase and rule.guard(state):
            return rule
    return None
