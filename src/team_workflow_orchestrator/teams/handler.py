from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable

from team_workflow_orchestrator.core.errors import HandlerExecutionError, OrchestrationError


class Team(str, Enum):
    """Well-known team names.

    Handlers may register under any name; these are the ones the supervisor and
    the master orchestrator route to.
    """

    MEETING_ANALYSIS = "meeting_analysis"
    EMAIL_TRIAGE = "email_triage"
    CALENDAR_WORKFLOW = "calendar_workflow"
    UNKNOWN = "unknown"


@runtime_checkable
class TeamHandler(Protocol):
    """A pluggable domain unit the core delegates work to.

    The core never inspects a handler's internals. ``can_handle`` is optional:
    handlers that do not define it are skipped by capability probing.

    Handlers used by the master orchestrator return mappings. The keys read back
    are ``session_id`` (all phases), ``calendar_event`` / ``transcript`` /
    ``context`` (calendar), ``analysis_result`` (meeting) and ``email_draft``
    (email).
    """

    async def process(self, input: dict[str, Any]) -> Any: ...

    def get_team_name(self) -> str: ...


async def run_handler(handler: TeamHandler, payload: dict[str, Any]) -> Any:
    """Call ``handler.process``, reporting foreign failures as :class:`HandlerExecutionError`.

    The original exception is kept as ``__cause__`` and its message is reused.
    """

    try:
        return await handler.process(payload)
    except OrchestrationError:
        raise
    except Exception as e:
        raise HandlerExecutionError(handler.get_team_name(), str(e) or type(e).__name__) from e
