"""Graph builder for the supervisor router.

The supervisor is a single pass: routing -> processing -> finalization. A stage
failure is captured into the state and the graph jumps straight to END.
"""

from __future__ import annotations

import logging

from team_workflow_orchestrator.core.errors import (
    HandlerNotFoundError,
    LLMUnavailableError,
    RoutingAmbiguityError,
)
from team_workflow_orchestrator.teams.handler import Team, run_handler
from team_workflow_orchestrator.teams.registry import TeamHandlerRegistry
from team_workflow_orchestrator.workflow.builder import BaseGraphBuilder
from team_workflow_orchestrator.workflow.graph import END, START, NodeFn, WorkflowGraph

from .classifier import InputClassifier, excerpt
from .state import (
    InputKind,
    RoutingDecision,
    SupervisorInput,
    SupervisorState,
    SupervisorStatus,
    fail,
    team_for_kind,
    transition,
)

logger = logging.getLogger(__name__)

ROUTING = "routing"
PROCESSING = "processing"
FINALIZATION = "finalization"


def _end_if_failed(state: SupervisorState) -> str | None:
    return END if state.status == SupervisorStatus.FAILED else None


class SupervisorGraphBuilder(BaseGraphBuilder[SupervisorState]):
    graph_name = "supervisor"

    def __init__(
        self,
        registry: TeamHandlerRegistry,
        classifier: InputClassifier | None = None,
        *,
        excerpt_chars: int = 1000,
        low_confidence_threshold: float = 0.6,
    ) -> None:
        super().__init__()
        self.registry = registry
        self.classifier = classifier
        self.excerpt_chars = excerpt_chars
        self.low_confidence_threshold = low_confidence_threshold

    def build_nodes(self) -> dict[str, NodeFn[SupervisorState]]:
        return {
            ROUTING: self.routing_node,
            PROCESSING: self.processing_node,
            FINALIZATION: self.finalization_node,
        }

    def define_edges(self, graph: WorkflowGraph[SupervisorState]) -> None:
        graph.add_edge(START, ROUTING)
        graph.add_conditional_edge(ROUTING, _end_if_failed)
        graph.add_edge(ROUTING, PROCESSING)
        graph.add_conditional_edge(PROCESSING, _end_if_failed)
        graph.add_edge(PROCESSING, FINALIZATION)
        graph.add_edge(FINALIZATION, END)

    async def routing_node(self, state: SupervisorState) -> SupervisorState:
        logger.info("Routing input", extra={"session_id": state.session_id})
        try:
            decision = await self.route(state.input)
            return transition(state, SupervisorStatus.ROUTING, routing=decision)
        except Exception as e:
            logger.error(f"Error in routing: {e}", exc_info=True)
            return fail(state, ROUTING, e)

    async def route(self, input: SupervisorInput) -> RoutingDecision:
        if input.type is not None and input.type != InputKind.OTHER:
            return RoutingDecision(
                team=team_for_kind(input.type).value,
                confidence=1.0,
                explanation=f"Input type is explicitly {input.type.value}",
            )

        if self.classifier is None:
            logger.warning("No classifier configured; input kind is unknown")
            return RoutingDecision(
                team=Team.UNKNOWN.value,
                confidence=0.5,
                explanation="No classifier configured",
            )

        try:
            classification = await self.classifier.classify(
                excerpt(input.content, self.excerpt_chars)
            )
        except (RoutingAmbiguityError, LLMUnavailableError) as e:
            logger.error(f"Failed to determine routing decision: {e}")
            return RoutingDecision(
                team=Team.UNKNOWN.value,
                confidence=0.5,
                explanation="Failed to determine input type",
            )

        team = team_for_kind(classification.type)
        if classification.confidence < self.low_confidence_threshold:
            logger.warning(
                "Low-confidence routing decision; keeping best guess",
                extra={"team": team.value, "confidence": classification.confidence},
            )
        return RoutingDecision(
            team=team.value,
            confidence=classification.confidence,
            explanation=classification.explanation,
        )

    async def processing_node(self, state: SupervisorState) -> SupervisorState:
        team = state.routing.team if state.routing else Team.UNKNOWN.value
        logger.info(
            f"Processing input with team {team}", extra={"session_id": state.session_id}
        )
        try:
            payload = state.input.to_handler_payload()
            handler = self.registry.get_handler(team)
            if handler is None and team == Team.UNKNOWN.value:
                handler = await self.registry.find_handler_for_input(payload)
            if handler is None:
                raise HandlerNotFoundError(team)

            results = await run_handler(handler, payload)
            return transition(state, SupervisorStatus.PROCESSING, results=results)
        except Exception as e:
            logger.error(f"Error in processing: {e}", exc_info=True)
            return fail(state, PROCESSING, e)

    async def finalization_node(self, state: SupervisorState) -> SupervisorState:
        # Extension point for post-processing results; currently a pass-through.
        logger.info("Finalizing results", extra={"session_id": state.session_id})
        try:
            return transition(state, SupervisorStatus.COMPLETED)
        except Exception as e:
            logger.error(f"Error in finalization: {e}", exc_info=True)
            return fail(state, FINALIZATION, e)
