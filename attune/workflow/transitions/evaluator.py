"""Transition evaluator.

Decides the single next phase for a session, or why it must stay:

1. Any required field missing or invalid: blocked on field validation
2. Any blocking constraint unmet: blocked on constraint
3. Outgoing edges are tried by priority, then declaration order. The
   first conditioned edge whose predicate holds is selected at once; an
   unconditional edge is remembered as the fallback
4. Without a matching conditioned edge the fallback is selected
5. Without any selected edge: blocked, no matching edge
"""

from typing import TYPE_CHECKING, Any

from attune.observability.logging import get_logger
from attune.workflow.fields.store import RequirementValidator
from attune.workflow.models import (
    BlockReason,
    SessionPhaseState,
    SessionProgress,
    TransitionDecision,
    TransitionEdge,
)
from attune.workflow.timing.tracker import PhaseTimingTracker
from attune.workflow.transitions.predicates import EvaluationContext, evaluate_predicate

if TYPE_CHECKING:
    from attune.workflow.graph.graph import PhaseGraph

logger = get_logger(__name__)


class TransitionEvaluator:
    """Select the next phase from requirements, constraints and edges."""

    def __init__(
        self,
        graph: "PhaseGraph",
        requirements: RequirementValidator,
        tracker: PhaseTimingTracker,
    ) -> None:
        self._graph = graph
        self._requirements = requirements
        self._tracker = tracker

    def build_context(
        self,
        phase_id: str,
        values: dict[str, Any],
        progress: SessionProgress,
        state: SessionPhaseState,
    ) -> EvaluationContext:
        """Snapshot of the session state predicates read, with typed field values."""
        return EvaluationContext(
            values=self._requirements.normalize(phase_id, values),
            loop_seconds=self._tracker.loop_seconds(progress, state),
            loop_counts={family: t.loop_count for family, t in progress.loop_timers.items()},
        )

    def select_edge(self, phase_id: str, context: EvaluationContext) -> TransitionEdge | None:
        """Pick the outgoing edge to take, ignoring requirements and constraints."""
        fallback: TransitionEdge | None = None

        for edge in self._graph.get_outgoing_edges(phase_id):
            if edge.condition is None:
                if fallback is None:
                    fallback = edge
                continue
            if evaluate_predicate(edge.condition.predicate, context):
                logger.debug(
                    "transition_condition_matched",
                    phase_id=phase_id,
                    edge_id=edge.edge_id,
                    condition=edge.condition.name,
                )
                return edge

        return fallback

    def evaluate(
        self,
        phase_id: str,
        values: dict[str, Any],
        progress: SessionProgress,
        state: SessionPhaseState,
    ) -> TransitionDecision:
        """Evaluate the transition out of a phase.

        Args:
            phase_id: Phase the session is in
            values: Stored field values by name
            progress: Session aggregate (loop timers)
            state: Live visit of the phase

        Returns:
            TransitionDecision with either `to_phase` or `blocked` set
        """
        requirements = self._requirements.check(phase_id, values)
        constraints = self._tracker.check_constraints(phase_id, state)
        decision = TransitionDecision(
            phase_id=phase_id,
            requirements=requirements,
            constraints=constraints,
        )

        if not requirements.complete:
            decision.blocked = BlockReason.FIELD_VALIDATION
            return decision

        if not constraints.satisfied:
            decision.blocked = BlockReason.CONSTRAINT
            return decision

        edge = self.select_edge(phase_id, self.build_context(phase_id, values, progress, state))
        if edge is None:
            decision.blocked = BlockReason.NO_MATCHING_EDGE
            return decision

        decision.edge = edge
        decision.to_phase = edge.to_phase
        return decision
