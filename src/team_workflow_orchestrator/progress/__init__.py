"""Progress computation and event publishing."""

from .publisher import (
    NODE_PROGRESS,
    PROGRESS_EVENT,
    ProgressEvent,
    ProgressPublisher,
    WorkflowKind,
)

__all__ = [
    "NODE_PROGRESS",
    "PROGRESS_EVENT",
    "ProgressEvent",
    "ProgressPublisher",
    "WorkflowKind",
]
