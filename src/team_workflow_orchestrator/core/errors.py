"""Error taxonomy for the orchestration core.

Only the Master Orchestrator turns phase failures into retry signals. Everything
else propagates, or is captured into workflow state where the stage contract says so.
"""

from __future__ import annotations


class OrchestrationError(Exception):
    """Base class for orchestration failures."""


class InputValidationError(OrchestrationError, ValueError):
    """Malformed or empty input. Fails immediately, never retried."""


class RoutingAmbiguityError(OrchestrationError):
    """Classification output could not be interpreted."""


class HandlerNotFoundError(OrchestrationError, LookupError):
    def __init__(self, team: str) -> None:
        super().__init__(f'No handler registered for team "{team}"')
        self.team = team


class HandlerExecutionError(OrchestrationError):
    def __init__(self, team: str, message: str) -> None:
        super().__init__(message)
        self.team = team


class GraphTopologyError(OrchestrationError):
    """The graph definition cannot be traversed (missing edge or node)."""


class InfiniteLoopError(GraphTopologyError):
    def __init__(self, node: str) -> None:
        super().__init__(f"Infinite loop detected at node {node}")
        self.node = node


class IllegalTransitionError(OrchestrationError, ValueError):
    pass


class WorkflowResumeError(OrchestrationError):
    pass


class SessionNotFoundError(OrchestrationError, KeyError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


class LLMUnavailableError(OrchestrationError):
    """The classification backend could not be reached or rejected the request."""
