"""Workflow graph primitives.

This package provides:
- a sequential, cycle-checked graph executor
- a builder template for declaring graphs
- an in-process event bus used as the telemetry sink
"""

from .builder import BaseGraphBuilder
from .events import EventBus, EventSink
from .graph import END, START, WorkflowGraph

__all__ = ["BaseGraphBuilder", "END", "EventBus", "EventSink", "START", "WorkflowGraph"]
