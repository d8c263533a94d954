"""Unit tests for the workflow graph engine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace

import pytest

from team_workflow_orchestrator.core.errors import GraphTopologyError, InfiniteLoopError
from team_workflow_orchestrator.workflow.builder import BaseGraphBuilder
from team_workflow_orchestrator.workflow.graph import END, START, WorkflowGraph


@dataclass(frozen=True)
class Trail:
    visited: tuple[str, ...] = ()
    flag: bool = False
    hooks: tuple[str, ...] = field(default=())


def _step(name: str):
    async def node(state: Trail) -> Trail:
        return replace(state, visited=state.visited + (name,))

    return node


@pytest.mark.asyncio
async def test_linear_graph_runs_each_node_once() -> None:
    graph: WorkflowGraph[Trail] = WorkflowGraph("linear")
    graph.add_node("a", _step("a"))
    graph.add_node("b", _step("b"))
    graph.add_edge(START, "a")
    graph.add_edge("a", "b")
    graph.add_edge("b", END)
    graph.validate()

    final = await graph.execute(Trail())

    assert final.visited == ("a", "b")


@pytest.mark.asyncio
async def test_sync_node_functions_are_supported() -> None:
    graph: WorkflowGraph[Trail] = WorkflowGraph()
    graph.add_node("a", lambda s: replace(s, visited=s.visited + ("a",)))
    graph.add_edge(START, "a")
    graph.add_edge("a", END)

    assert (await graph.execute(Trail())).visited == ("a",)


@pytest.mark.asyncio
async def test_conditional_edge_takes_precedence_over_unconditional() -> None:
    graph: WorkflowGraph[Trail] = WorkflowGraph()
    graph.add_node("a", _step("a"))
    graph.add_node("b", _step("b"))
    graph.add_node("c", _step("c"))
    graph.add_edge(START, "a")
    graph.add_edge("a", "b")
    graph.add_conditional_edge("a", lambda s: "c" if s.flag else None)
    graph.add_edge("b", END)
    graph.add_edge("c", END)

    assert (await graph.execute(Trail(flag=True))).visited == ("a", "c")
    assert (await graph.execute(Trail(flag=False))).visited == ("a", "b")


@pytest.mark.asyncio
async def test_conditional_edges_evaluated_in_registration_order() -> None:
    graph: WorkflowGraph[Trail] = WorkflowGraph()
    graph.add_node("a", _step("a"))
    graph.add_node("b", _step("b"))
    graph.add_node("c", _step("c"))
    graph.add_edge(START, "a")

    async def first(_s: Trail) -> str:
        return "b"

    graph.add_conditional_edge("a", first)
    graph.add_conditional_edge("a", lambda _s: "c")
    graph.add_edge("b", END)
    graph.add_edge("c", END)

    assert (await graph.execute(Trail())).visited == ("a", "b")


@pytest.mark.asyncio
async def test_missing_edge_raises_topology_error() -> None:
    graph: WorkflowGraph[Trail] = WorkflowGraph()
    graph.add_node("a", _step("a"))
    graph.add_edge(START, "a")

    with pytest.raises(GraphTopologyError, match="No edge found from node a"):
        await graph.execute(Trail())


@pytest.mark.asyncio
async def test_revisit_raises_before_node_runs_twice() -> None:
    calls: list[str] = []

    async def a(state: Trail) -> Trail:
        calls.append("a")
        return state

    async def b(state: Trail) -> Trail:
        calls.append("b")
        return state

    graph: WorkflowGraph[Trail] = WorkflowGraph("cyclic")
    graph.add_node("a", a)
    graph.add_node("b", b)
    graph.add_edge(START, "a")
    graph.add_edge("a", "b")
    graph.add_edge("b", "a")

    with pytest.raises(InfiniteLoopError) as exc_info:
        await graph.execute(Trail())

    assert exc_info.value.node == "a"
    assert isinstance(exc_info.value, GraphTopologyError)
    assert calls == ["a", "b"]


@pytest.mark.asyncio
async def test_node_exception_propagates_unmodified() -> None:
    class Boom(Exception):
        pass

    async def explode(_state: Trail) -> Trail:
        raise Boom("kaput")

    graph: WorkflowGraph[Trail] = WorkflowGraph()
    graph.add_node("a", explode)
    graph.add_edge(START, "a")
    graph.add_edge("a", END)

    with pytest.raises(Boom, match="kaput"):
        await graph.execute(Trail())


@pytest.mark.asyncio
async def test_hooks_run_in_order_and_may_transform_state() -> None:
    graph: WorkflowGraph[Trail] = WorkflowGraph()
    graph.add_node("a", _step("a"))
    graph.add_node("b", _step("b"))
    graph.add_edge(START, "a")
    graph.add_edge("a", "b")
    graph.add_edge("b", END)

    seen: list[tuple[tuple[str, ...], tuple[str, ...], str]] = []

    async def first(prev: Trail, new: Trail, node: str) -> Trail:
        seen.append((prev.visited, new.visited, node))
        return replace(new, hooks=new.hooks + (f"first:{node}",))

    def second(_prev: Trail, new: Trail, node: str) -> Trail:
        return replace(new, hooks=new.hooks + (f"second:{node}",))

    graph.add_state_transition_hook(first)
    graph.add_state_transition_hook(second)

    final = await graph.execute(Trail())

    assert final.hooks == ("first:a", "second:a", "first:b", "second:b")
    assert seen == [((), ("a",), "a"), (("a",), ("a", "b"), "b")]


@pytest.mark.asyncio
async def test_graph_is_reentrant_across_concurrent_invocations() -> None:
    async def slow(state: Trail) -> Trail:
        await asyncio.sleep(0)
        return replace(state, visited=state.visited + ("slow",))

    graph: WorkflowGraph[Trail] = WorkflowGraph()
    graph.add_node("slow", slow)
    graph.add_edge(START, "slow")
    graph.add_edge("slow", END)

    results = await asyncio.gather(*(graph.execute(Trail()) for _ in range(5)))

    assert all(r.visited == ("slow",) for r in results)


def test_reserved_and_duplicate_node_names_rejected() -> None:
    graph: WorkflowGraph[Trail] = WorkflowGraph()
    with pytest.raises(GraphTopologyError):
        graph.add_node(START, _step("x"))
    with pytest.raises(GraphTopologyError):
        graph.add_node(END, _step("x"))

    graph.add_node("a", _step("a"))
    with pytest.raises(GraphTopologyError):
        graph.add_node("a", _step("a"))


def test_validate_detects_unwired_graphs() -> None:
    graph: WorkflowGraph[Trail] = WorkflowGraph()
    graph.add_node("a", _step("a"))
    with pytest.raises(GraphTopologyError, match="no edge from"):
        graph.validate()

    graph.add_edge(START, "a")
    with pytest.raises(GraphTopologyError, match="no outgoing edge"):
        graph.validate()

    graph.add_edge("a", "missing")
    with pytest.raises(GraphTopologyError, match="not a node"):
        graph.validate()


@pytest.mark.asyncio
async def test_builder_produces_validated_graph() -> None:
    class TwoStep(BaseGraphBuilder[Trail]):
        graph_name = "two-step"

        def build_nodes(self):
            return {"first": _step("first"), "second": _step("second")}

        def define_edges(self, graph: WorkflowGraph[Trail]) -> None:
            graph.add_edge(START, "first")
            graph.add_edge("first", "second")
            graph.add_edge("second", END)

    graph = TwoStep().build_graph()

    assert graph.name == "two-step"
    assert graph.node_names == ["first", "second"]
    assert (await graph.execute(Trail())).visited == ("first", "second")
