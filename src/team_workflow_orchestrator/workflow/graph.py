from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from team_workflow_orchestrator.core.errors import GraphTopologyError, InfiniteLoopError

logger = logging.getLogger(__name__)

START = "__start__"
END = "__end__"

StateT = TypeVar("StateT")

NodeFn = Callable[[StateT], "StateT | Awaitable[StateT]"]
EdgeCondition = Callable[[StateT], "str | None | Awaitable[str | None]"]
StateTransitionHook = Callable[[StateT, StateT, str], "StateT | Awaitable[StateT]"]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(frozen=True, slots=True)
class Edge:
    source: str
    target: str | None = None
    condition: Callable[[Any], Any] | None = None

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None


class WorkflowGraph(Generic[StateT]):
    """Directed graph of named nodes executed sequentially against a threaded state.

    A graph is built once and reused. ``execute`` keeps all traversal state local,
    so concurrent invocations on the same graph never interfere. Hooks receive the
    state and must take any per-session context (e.g. a session id) from it.
    """

    def __init__(self, name: str = "workflow") -> None:
        self.name = name
        self._nodes: dict[str, NodeFn[StateT]] = {}
        self._edges: dict[str, list[Edge]] = {}
        self._hooks: list[StateTransitionHook[StateT]] = []

    @property
    def node_names(self) -> list[str]:
        return list(self._nodes)

    def add_node(self, name: str, fn: NodeFn[StateT]) -> None:
        if name in (START, END):
            raise GraphTopologyError(f"Node name {name!r} is reserved")
        if name in self._nodes:
            raise GraphTopologyError(f"Node {name!r} already exists in graph {self.name!r}")
        self._nodes[name] = fn

    def add_edge(self, source: str, target: str) -> None:
        self._edges.setdefault(source, []).append(Edge(source=source, target=target))

    def add_conditional_edge(self, source: str, condition: EdgeCondition[StateT]) -> None:
        self._edges.setdefault(source, []).append(Edge(source=source, condition=condition))

    def add_state_transition_hook(self, hook: StateTransitionHook[StateT]) -> None:
        self._hooks.append(hook)

    def validate(self) -> None:
        """Check that every edge endpoint and every node is wired.

        Conditional targets are only known at runtime and are checked during
        ``execute``.
        """

        if not self._edges.get(START):
            raise GraphTopologyError(f"Graph {self.name!r} has no edge from {START}")
        for source, edges in self._edges.items():
            if source != START and source not in self._nodes:
                raise GraphTopologyError(f"Edge source {source!r} is not a node")
            for edge in edges:
                if edge.target in (None, END):
                    continue
                if edge.target not in self._nodes:
                    raise GraphTopologyError(f"Edge target {edge.target!r} is not a node")
        for name in self._nodes:
            if not self._edges.get(name):
                raise GraphTopologyError(f"Node {name!r} has no outgoing edge")

    async def _next_node(self, current: str, state: StateT) -> str | None:
        edges = self._edges.get(current, [])

        # Conditional edges take precedence; the first non-None target wins.
        for edge in edges:
            if edge.condition is None:
                continue
            target = await _resolve(edge.condition(state))
            if target:
                return target

        for edge in edges:
            if edge.condition is None:
                return edge.target

        return None

    async def execute(self, initial_state: StateT) -> StateT:
        state = initial_state
        current = START
        visited: set[str] = {START}

        logger.debug("Executing graph", extra={"graph": self.name})

        while True:
            target = await self._next_node(current, state)
            if target is None:
                raise GraphTopologyError(f"No edge found from node {current}")
            if target == END:
                break
            if target in visited:
                raise InfiniteLoopError(target)
            visited.add(target)

            fn = self._nodes.get(target)
            if fn is None:
                raise GraphTopologyError(f"Node {target} not found in graph")

            logger.debug("Executing node", extra={"graph": self.name, "node": target})
            try:
                prev_state = state
                state = await _resolve(fn(state))
                for hook in self._hooks:
                    state = await _resolve(hook(prev_state, state, target))
            except Exception:
                logger.error(
                    "Error executing node", extra={"graph": self.name, "node": target}
                )
                raise

            current = target

        logger.debug("Graph execution completed", extra={"graph": self.name})
        return state
