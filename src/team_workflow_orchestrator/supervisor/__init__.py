"""Single-shot supervisor: classify an input, dispatch it to one team, finalize."""

from .classifier import Classification, InputClassifier, LLMInputClassifier
from .graph_builder import SupervisorGraphBuilder
from .service import SupervisorService, WorkflowResults
from .state import (
    InputKind,
    RoutingDecision,
    StageError,
    SupervisorInput,
    SupervisorState,
    SupervisorStatus,
)

__all__ = [
    "Classification",
    "InputClassifier",
    "InputKind",
    "LLMInputClassifier",
    "RoutingDecision",
    "StageError",
    "SupervisorGraphBuilder",
    "SupervisorInput",
    "SupervisorService",
    "SupervisorState",
    "SupervisorStatus",
    "WorkflowResults",
]
