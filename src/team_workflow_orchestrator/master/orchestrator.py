"""Master orchestrator: chains calendar, meeting and email phases per trigger.

Each master session runs its phases strictly one at a time (a per-session
lock); independent sessions run concurrently. The loop halts when no transition
rule holds, leaving the session ``waiting`` until :meth:`MasterOrchestrator.resume`
is called with the awaited data.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from team_workflow_orchestrator.core.config import WorkflowConfig
from team_workflow_orchestrator.core.errors import (
    HandlerNotFoundError,
    InputValidationError,
    SessionNotFoundError,
    WorkflowResumeError,
)
from team_workflow_orchestrator.progress.publisher import ProgressPublisher
from team_workflow_orchestrator.state.sessions import SessionMap
from team_workflow_orchestrator.state.store import SessionRecord, SessionStore, utc_now
from team_workflow_orchestrator.supervisor.state import StageError
from team_workflow_orchestrator.teams.handler import TeamHandler, run_handler
from team_workflow_orchestrator.teams.registry import TeamHandlerRegistry
from team_workflow_orchestrator.workflow.events import EventSink

from .followups import attendee_emails, build_follow_up_drafts
from .state import (
    MANUAL_INTERVENTION,
    PHASE_TEAMS,
    RETRY_CURRENT_PHASE,
    MasterStatus,
    MasterWorkflowState,
    Phase,
    TriggerType,
    WorkflowTrigger,
    advance,
    determine_starting_phase,
)
from .transitions import (
    DEFAULT_TRANSITIONS,
    PHASE_TRANSITION,
    TransitionRule,
    find_applicable_transition,
)

logger = logging.getLogger(__name__)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_cancelled(state: MasterWorkflowState) -> MasterWorkflowState:
    now = utc_now()
    return state.model_copy(
        update={
            "status": MasterStatus.CANCELLED,
            "stage": "cancelled",
            "end_time": state.end_time or now,
            "updated_at": now,
        }
    )


def merge_external_data(
    state: MasterWorkflowState, data: Mapping[str, Any] | None
) -> MasterWorkflowState:
    """Fold data from an external event (e.g. a recording becoming available) into ``state``."""

    if not data:
        return state

    updates: dict[str, Any] = {"updated_at": utc_now()}
    transcript = data.get("transcript")
    if isinstance(transcript, str) and transcript.strip():
        updates["meeting_transcript"] = transcript
    if data.get("recording") is not None:
        updates["workspace_data"] = {**state.workspace_data, "meeting_recording": data["recording"]}
    if isinstance(data.get("calendar_event"), Mapping):
        updates["calendar_event"] = dict(data["calendar_event"])
    if isinstance(data.get("analysis_results"), Mapping):
        updates["analysis_results"] = dict(data["analysis_results"])
    return state.model_copy(update=updates)


class MasterOrchestrator:
    def __init__(
        self,
        registry: TeamHandlerRegistry,
        events: EventSink,
        session_store: SessionStore | None = None,
        progress: ProgressPublisher | None = None,
        config: WorkflowConfig | None = None,
        transitions: Sequence[TransitionRule] = DEFAULT_TRANSITIONS,
    ) -> None:
        self.registry = registry
        self.events = events
        self.store = session_store
        self.progress = progress
        self.config = config or WorkflowConfig()
        self.transitions = tuple(transitions)
        self._sessions: SessionMap[MasterWorkflowState] = SessionMap("master_sessions")
        self._locks: dict[str, asyncio.Lock] = {}
        # Sessions cancelled while a run holds their lock.
        self._cancelled: set[str] = set()

    # --- entry points -----------------------------------------------------

    async def orchestrate(
        self, trigger: WorkflowTrigger | Mapping[str, Any], user_id: str | None = None
    ) -> MasterWorkflowState:
        if not isinstance(trigger, WorkflowTrigger):
            try:
                trigger = WorkflowTrigger.model_validate(trigger)
            except ValidationError as e:
                raise InputValidationError(f"Malformed trigger: {e}") from e

        master_session_id = f"master-{uuid.uuid4().hex}"
        transcript = trigger.data.get("transcript")
        calendar_event = trigger.data.get("calendar_event")
        state = MasterWorkflowState(
            master_session_id=master_session_id,
            user_id=user_id or "default",
            triggering_event=trigger,
            current_phase=determine_starting_phase(trigger),
            meeting_transcript=transcript if isinstance(transcript, str) else None,
            calendar_event=dict(calendar_event) if isinstance(calendar_event, Mapping) else None,
        )
        logger.info(
            f"Starting master workflow at phase {state.current_phase.value}",
            extra={"master_session_id": master_session_id, "trigger": trigger.type.value},
        )

        async with self._lock_for(master_session_id):
            self._sessions.set(master_session_id, state)
            try:
                await self._create_record(state)
                if self.progress is not None and master_session_id not in self._cancelled:
                    await self.progress.init_progress(master_session_id, "Starting master workflow")
                return await self._run(state)
            finally:
                self._cancelled.discard(master_session_id)

    async def resume(
        self,
        master_session_id: str,
        data: Mapping[str, Any] | None = None,
        *,
        force: bool = False,
    ) -> MasterWorkflowState:
        """Re-enter the loop at the persisted phase.

        A ``waiting`` session re-evaluates its transition rule first; a ``failed``
        session re-runs its phase.

        Raises:
            SessionNotFoundError: if the session is neither live nor persisted.
            WorkflowResumeError: if the session is finished, or flagged for manual
                intervention and ``force`` is not set.
        """

        # Unknown ids must not leave a lock behind.
        await self._load(master_session_id)

        async with self._lock_for(master_session_id):
            try:
                return await self._resume_locked(master_session_id, data, force)
            finally:
                self._cancelled.discard(master_session_id)

    async def _resume_locked(
        self, master_session_id: str, data: Mapping[str, Any] | None, force: bool
    ) -> MasterWorkflowState:
        state = await self._load(master_session_id)
        if state.is_finished:
            raise WorkflowResumeError(
                f"Master session {master_session_id} is {state.status.value}"
            )
        if state.fallback_strategy == MANUAL_INTERVENTION and not force:
            raise WorkflowResumeError(
                f"Master session {master_session_id} requires manual intervention"
            )

        reevaluate = state.status == MasterStatus.WAITING
        state = merge_external_data(state, data)
        logger.info(
            f"Resuming master workflow at phase {state.current_phase.value}",
            extra={"master_session_id": master_session_id, "force": force},
        )
        self._sessions.set(master_session_id, state)
        if self.progress is not None and self.progress.current_progress(master_session_id) is None:
            await self.progress.init_progress(
                master_session_id, "Resuming master workflow", percent=state.progress
            )
        return await self._run(state, reevaluate_first=reevaluate)

    async def get_status(self, master_session_id: str) -> MasterWorkflowState | None:
        try:
            return await self._load(master_session_id)
        except SessionNotFoundError:
            return None

    def list_active(self) -> list[MasterWorkflowState]:
        return [s for s in self._sessions.values() if not s.is_finished]

    async def cancel(self, master_session_id: str) -> bool:
        """Stop tracking a session.

        A run holding the session lock stops at its next phase boundary; the
        handler call in flight is not interrupted.
        """

        state = self._sessions.get(master_session_id)
        if state is None:
            return False

        lock = self._locks.pop(master_session_id, None)
        if lock is not None and lock.locked():
            self._cancelled.add(master_session_id)
        state = _as_cancelled(state)
        logger.info("Cancelled master workflow", extra={"master_session_id": master_session_id})
        self._sessions.delete(master_session_id)
        progress = self.progress
        if progress is not None and progress.current_progress(master_session_id) is not None:
            await progress.fail_progress(
                master_session_id, phase="cancelled", message="Master workflow cancelled"
            )
        await self._persist(state)
        return True

    def sweep_completed(self, older_than: timedelta) -> list[str]:
        cutoff = utc_now() - older_than

        def expired(state: MasterWorkflowState) -> bool:
            return state.is_finished and (state.end_time or state.updated_at) < cutoff

        evicted = self._sessions.sweep(expired)
        for session_id in evicted:
            self._locks.pop(session_id, None)
        return evicted

    # --- loop -------------------------------------------------------------

    async def _run(
        self, state: MasterWorkflowState, *, reevaluate_first: bool = False
    ) -> MasterWorkflowState:
        state = state.model_copy(update={"status": MasterStatus.RUNNING})
        iterations = 0

        while state.current_phase != Phase.COMPLETED:
            if self._was_cancelled(state):
                return _as_cancelled(state)
            if iterations >= self.config.max_iterations:
                logger.warning(
                    f"Master workflow reached max iterations ({self.config.max_iterations})",
                    extra={"master_session_id": state.master_session_id},
                )
                state = state.model_copy(update={"status": MasterStatus.WAITING})
                await self._checkpoint(state)
                return state
            iterations += 1

            if reevaluate_first:
                reevaluate_first = False
                rule = find_applicable_transition(state, self.transitions)
                if rule is not None:
                    state = await self._apply_transition(state, rule)
                    continue

            phase = state.current_phase
            try:
                state = await self._execute_phase(state)
            except Exception as e:
                if self._was_cancelled(state):
                    return _as_cancelled(state)
                state = self._record_failure(state, phase, e)
                await self._checkpoint(state)
                return state
            if self._was_cancelled(state):
                return _as_cancelled(state)

            rule = find_applicable_transition(state, self.transitions)
            if rule is None:
                logger.info(
                    f"No applicable transition from phase {phase.value}; waiting for input",
                    extra={"master_session_id": state.master_session_id},
                )
                state = state.model_copy(
                    update={"status": MasterStatus.WAITING, "updated_at": utc_now()}
                )
                await self._checkpoint(state)
                return state

            state = await self._apply_transition(state, rule)

        if self._was_cancelled(state):
            return _as_cancelled(state)
        if state.status != MasterStatus.COMPLETED:
            now = utc_now()
            state = state.model_copy(
                update={
                    "status": MasterStatus.COMPLETED,
                    "stage": "completed",
                    "progress": 100,
                    "end_time": state.end_time or now,
                    "updated_at": now,
                }
            )
            await self._checkpoint(state)
        logger.info(
            "Master workflow completed", extra={"master_session_id": state.master_session_id}
        )
        return state

    async def _apply_transition(
        self, state: MasterWorkflowState, rule: TransitionRule
    ) -> MasterWorkflowState:
        from_phase = state.current_phase
        state = advance(state, rule.to_phase)
        state = await rule.action(state, self.events)
        logger.info(
            f"Transitioned {from_phase.value} -> {rule.to_phase.value}",
            extra={"master_session_id": state.master_session_id, "rule": rule.name},
        )
        await self.events.emit(
            PHASE_TRANSITION,
            {
                "master_session_id": state.master_session_id,
                "from_phase": from_phase.value,
                "to_phase": rule.to_phase.value,
                "rule": rule.name,
                "completed_phases": [p.value for p in state.completed_phases],
                "progress": state.progress,
            },
        )
        await self._checkpoint(state)
        return state

    def _was_cancelled(self, state: MasterWorkflowState) -> bool:
        if state.master_session_id not in self._cancelled:
            return False
        logger.info(
            "Master workflow cancelled while running; stopping",
            extra={"master_session_id": state.master_session_id},
        )
        return True

    def _record_failure(
        self, state: MasterWorkflowState, phase: Phase, exc: Exception
    ) -> MasterWorkflowState:
        retry_count = state.retry_count + 1
        fallback = (
            RETRY_CURRENT_PHASE if retry_count < self.config.max_retries else MANUAL_INTERVENTION
        )
        logger.error(
            f"Phase {phase.value} failed: {exc}",
            exc_info=True,
            extra={
                "master_session_id": state.master_session_id,
                "retry_count": retry_count,
                "fallback_strategy": fallback,
            },
        )
        return state.model_copy(
            update={
                "error": StageError(message=str(exc) or type(exc).__name__, stage=phase.value),
                "stage": "error",
                "status": MasterStatus.FAILED,
                "retry_count": retry_count,
                "fallback_strategy": fallback,
                "updated_at": utc_now(),
            }
        )

    # --- phases -----------------------------------------------------------

    def _handler_for(self, phase: Phase) -> TeamHandler:
        team = PHASE_TEAMS[phase].value
        handler = self.registry.get_handler(team)
        if handler is None:
            raise HandlerNotFoundError(team)
        return handler

    async def _execute_phase(self, state: MasterWorkflowState) -> MasterWorkflowState:
        phase = state.current_phase
        logger.info(
            f"Executing {phase.value} phase", extra={"master_session_id": state.master_session_id}
        )
        if phase == Phase.CALENDAR:
            state = await self._execute_calendar(state)
        elif phase == Phase.MEETING:
            state = await self._execute_meeting(state)
        elif phase == Phase.EMAIL:
            state = await self._execute_email(state)
        else:
            raise ValueError(f"Phase {phase.value} has no team")

        return state.model_copy(
            update={
                "retry_count": 0,
                "fallback_strategy": None,
                "error": None,
                "status": MasterStatus.RUNNING,
                "updated_at": utc_now(),
            }
        )

    def _phase_metadata(self, state: MasterWorkflowState, **extra: Any) -> dict[str, Any]:
        return {"master_session_id": state.master_session_id, **extra}

    async def _execute_calendar(self, state: MasterWorkflowState) -> MasterWorkflowState:
        handler = self._handler_for(Phase.CALENDAR)
        trigger = state.triggering_event
        session_id = f"cal-{state.master_session_id}"
        result = _as_mapping(
            await run_handler(
                handler,
                {
                    "type": "calendar_event_processing",
                    "user_id": state.user_id,
                    "calendar_event": state.calendar_event,
                    "session_id": session_id,
                    "metadata": self._phase_metadata(
                        state, trigger=trigger.model_dump(mode="json")
                    ),
                }
            )
        )

        calendar_event = result.get("calendar_event") or state.calendar_event
        workspace = {**state.workspace_data, "calendar_event": calendar_event}
        permissions = _as_mapping(result.get("context")).get("permissions")
        if permissions is not None:
            workspace["permissions"] = permissions

        transcript = result.get("transcript") or state.meeting_transcript
        if not transcript and trigger.type == TriggerType.MEETING_ENDED:
            transcript = trigger.data.get("transcript")

        return state.model_copy(
            update={
                "active_workflows": {
                    **state.active_workflows,
                    Phase.CALENDAR.value: result.get("session_id") or session_id,
                },
                "calendar_event": calendar_event,
                "meeting_transcript": transcript,
                "workspace_data": workspace,
                "stage": "calendar_completed",
            }
        )

    async def _execute_meeting(self, state: MasterWorkflowState) -> MasterWorkflowState:
        handler = self._handler_for(Phase.MEETING)
        event = state.calendar_event or {}
        session_id = f"meeting-{state.master_session_id}"
        result = _as_mapping(
            await run_handler(
                handler,
                {
                    "type": "meeting_transcript",
                    "transcript": state.meeting_transcript,
                    "participants": attendee_emails(event),
                    "meeting_title": event.get("summary") or "Unknown Meeting",
                    "date": _as_mapping(event.get("start")).get("dateTime")
                    or utc_now().isoformat(),
                    "session_id": session_id,
                    "metadata": self._phase_metadata(
                        state,
                        calendar_session_id=state.active_workflows.get(Phase.CALENDAR.value),
                        calendar_event=event or None,
                    ),
                }
            )
        )

        workspace = dict(state.workspace_data)
        recording = state.triggering_event.data.get("recording")
        if recording is not None:
            workspace.setdefault("meeting_recording", recording)

        analysis = result.get("analysis_result")
        return state.model_copy(
            update={
                "active_workflows": {
                    **state.active_workflows,
                    Phase.MEETING.value: result.get("session_id") or session_id,
                },
                "analysis_results": dict(analysis) if isinstance(analysis, Mapping) else None,
                "workspace_data": workspace,
                "stage": "meeting_analysis_completed",
            }
        )

    async def _execute_email(self, state: MasterWorkflowState) -> MasterWorkflowState:
        handler = self._handler_for(Phase.EMAIL)
        drafts = build_follow_up_drafts(state.analysis_results, state.calendar_event)
        metadata = self._phase_metadata(
            state,
            calendar_session_id=state.active_workflows.get(Phase.CALENDAR.value),
            meeting_session_id=state.active_workflows.get(Phase.MEETING.value),
        )

        payloads: list[dict[str, Any]] = [
            {
                "type": "follow_up_email",
                "email_draft": draft,
                "originating_meeting": (state.calendar_event or {}).get("id"),
                "session_id": f"email-{state.master_session_id}-{index}",
                "metadata": {**metadata, "analysis_results": state.analysis_results},
            }
            for index, draft in enumerate(drafts)
        ]
        if not payloads and state.triggering_event.type == TriggerType.EMAIL_RECEIVED:
            payloads.append(
                {
                    **state.triggering_event.data,
                    "type": "email",
                    "session_id": f"email-{state.master_session_id}-0",
                    "metadata": metadata,
                }
            )

        results: list[Any] = []
        for payload in payloads:
            results.append(await run_handler(handler, payload))

        session_ids = [
            _as_mapping(r).get("session_id") or p["session_id"] for r, p in zip(results, payloads)
        ]
        drafted = [
            _as_mapping(r)["email_draft"] for r in results if _as_mapping(r).get("email_draft")
        ]
        return state.model_copy(
            update={
                "active_workflows": {
                    **state.active_workflows,
                    Phase.EMAIL.value: ",".join(session_ids),
                },
                "follow_up_actions": results,
                "workspace_data": {**state.workspace_data, "email_drafts": drafted},
                "stage": "email_generation_completed",
            }
        )

    # --- persistence ------------------------------------------------------

    def _lock_for(self, master_session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(master_session_id, asyncio.Lock())

    async def _load(self, master_session_id: str) -> MasterWorkflowState:
        state = self._sessions.get(master_session_id)
        if state is not None:
            return state

        record = None
        if self.store is not None:
            try:
                record = await self.store.get_by_id(master_session_id)
            except Exception:
                logger.error(
                    "Failed to load master session",
                    exc_info=True,
                    extra={"master_session_id": master_session_id},
                )
        if record is None or record.kind != "master" or not record.snapshot:
            raise SessionNotFoundError(master_session_id)

        state = MasterWorkflowState.model_validate(record.snapshot)
        self._sessions.set(master_session_id, state)
        return state

    async def _checkpoint(self, state: MasterWorkflowState) -> None:
        """Publish progress for ``state``, then persist its snapshot."""

        session_id = state.master_session_id
        if session_id in self._cancelled:
            return
        self._sessions.set(session_id, state)

        if self.progress is not None:
            if state.status == MasterStatus.COMPLETED:
                await self.progress.complete_progress(
                    session_id, message="Master workflow completed"
                )
            elif state.status == MasterStatus.FAILED:
                message = state.error.message if state.error else None
                await self.progress.fail_progress(
                    session_id, phase=state.current_phase.value, message=message
                )
            else:
                await self.progress.update_progress(
                    session_id,
                    state.current_phase.value,
                    state.progress,
                    "in_progress",
                    f"Master workflow at phase {state.current_phase.value}",
                )

        await self._persist(state)

    async def _persist(self, state: MasterWorkflowState) -> None:
        if self.store is None:
            return
        fields: dict[str, Any] = {
            "status": state.status.value,
            "stage": state.stage,
            "progress": state.progress,
            "error": state.error.model_dump() if state.error else None,
            "snapshot": state.model_dump(mode="json"),
            "completed_at": state.end_time,
        }
        if state.status == MasterStatus.COMPLETED:
            fields["results"] = {
                "analysis_results": state.analysis_results,
                "follow_up_actions": state.follow_up_actions,
            }
        try:
            await self.store.update(state.master_session_id, fields)
        except Exception:
            logger.error(
                "Failed to persist master session",
                exc_info=True,
                extra={"master_session_id": state.master_session_id},
            )

    async def _create_record(self, state: MasterWorkflowState) -> None:
        if self.store is None:
            return
        try:
            await self.store.create(
                SessionRecord(
                    session_id=state.master_session_id,
                    user_id=state.user_id,
                    kind="master",
                    status=state.status.value,
                    stage=state.stage,
                    input_type=state.triggering_event.type.value,
                    input=state.triggering_event.model_dump(mode="json"),
                    snapshot=state.model_dump(mode="json"),
                    created_at=state.start_time,
                )
            )
        except Exception:
            logger.error(
                "Failed to create master session",
                exc_info=True,
                extra={"master_session_id": state.master_session_id},
            )
