"""Multi-phase master workflows: calendar -> meeting -> email."""

from .orchestrator import MasterOrchestrator, merge_external_data
from .state import (
    MasterStatus,
    MasterWorkflowState,
    Phase,
    TriggerType,
    WorkflowTrigger,
    determine_starting_phase,
)
from .transitions import DEFAULT_TRANSITIONS, TransitionRule, find_applicable_transition

__all__ = [
    "DEFAULT_TRANSITIONS",
    "MasterOrchestrator",
    "MasterStatus",
    "MasterWorkflowState",
    "Phase",
    "TransitionRule",
    "TriggerType",
    "WorkflowTrigger",
    "determine_starting_phase",
    "find_applicable_transition",
    "merge_external_data",
]
