from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Generic

from .graph import NodeFn, StateT, WorkflowGraph


class BaseGraphBuilder(ABC, Generic[StateT]):
    """Template for building a workflow graph.

    Subclasses provide the node functions and the edges; the builder wires them
    into a validated :class:`WorkflowGraph`.
    """

    graph_name: str = "workflow"

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @abstractmethod
    def build_nodes(self) -> dict[str, NodeFn[StateT]]: ...

    @abstractmethod
    def define_edges(self, graph: WorkflowGraph[StateT]) -> None: ...

    def build_graph(self) -> WorkflowGraph[StateT]:
        graph: WorkflowGraph[StateT] = WorkflowGraph(self.graph_name)
        for name, fn in self.build_nodes().items():
            graph.add_node(name, fn)
        self.define_edges(graph)
        graph.validate()
        self.logger.info("Graph built", extra={"graph": self.graph_name})
        return graph
