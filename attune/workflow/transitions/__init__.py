"""Transition predicates and the transition evaluator."""

from attune.workflow.transitions.evaluator import TransitionEvaluator
from attune.workflow.transitions.predicates import (
    EvaluationContext,
    evaluate_predicate,
    named_conditions,
)

__all__ = [
    "EvaluationContext",
    "TransitionEvaluator",
    "evaluate_predicate",
    "named_conditions",
]
