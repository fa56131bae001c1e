"""Named transition conditions and predicate evaluation.

Conditions are resolved by name when a graph is loaded. Every predicate
variant is evaluated by `evaluate_predicate`, which reads collected field
values and loop family aggregates from an `EvaluationContext`.

A predicate that reads an absent field evaluates to False; required
fields are checked by requirement validation before any edge is tried.
"""

import operator
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from attune.workflow.models import (
    AllOf,
    Comparison,
    FieldBetween,
    FieldCompare,
    LoopCount,
    LoopTime,
    Predicate,
    TransitionCondition,
)

PROCESSING_FAMILY = "focused_mindfulness"
PROCESSING_TIME_THRESHOLD_SECONDS = 1200
MAX_PROCESSING_LOOPS = 10

_OPERATORS: dict[Comparison, Callable[[Any, Any], bool]] = {
    Comparison.EQ: operator.eq,
    Comparison.NE: operator.ne,
    Comparison.GT: operator.gt,
    Comparison.GE: operator.ge,
    Comparison.LT: operator.lt,
    Comparison.LE: operator.le,
}


@dataclass(frozen=True)
class EvaluationContext:
    """Session state a predicate may read.

    Attributes:
        values: Collected field values by field name
        loop_seconds: Accumulated seconds per loop family, including the live visit
        loop_counts: Re-entry count per loop family
    """

    values: Mapping[str, Any] = field(default_factory=dict)
    loop_seconds: Mapping[str, float] = field(default_factory=dict)
    loop_counts: Mapping[str, int] = field(default_factory=dict)


def _compare(left: Any, op: Comparison, right: Any) -> bool:
    try:
        return bool(_OPERATORS[op](left, right))
    except TypeError:
        # Unorderable value types make the predicate not evaluable
        return False


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def evaluate_predicate(predicate: Predicate, context: EvaluationContext) -> bool:
    """Evaluate a predicate against session state."""
    if isinstance(predicate, FieldCompare):
        value = context.values.get(predicate.field)
        if value is None:
            return False
        return _compare(value, predicate.op, predicate.value)

    if isinstance(predicate, FieldBetween):
        value = context.values.get(predicate.field)
        if not _is_number(value):
            return False
        if predicate.minimum is not None and value < predicate.minimum:
            return False
        if predicate.maximum is not None and value > predicate.maximum:
            return False
        return True

    if isinstance(predicate, LoopTime):
        seconds = context.loop_seconds.get(predicate.family, 0.0)
        return _compare(seconds, predicate.op, predicate.seconds)

    if isinstance(predicate, LoopCount):
        count = context.loop_counts.get(predicate.family, 0)
        return _compare(count, predicate.op, predicate.count)

    if isinstance(predicate, AllOf):
        return all(evaluate_predicate(p, context) for p in predicate.predicates)

    raise TypeError(f"Unsupported predicate: {type(predicate).__name__}")


def iter_predicates(predicate: Predicate) -> Iterator[Predicate]:
    """Yield a predicate and every predicate nested in it."""
    yield predicate
    if isinstance(predicate, AllOf):
        for nested in predicate.predicates:
            yield from iter_predicates(nested)


def referenced_fields(predicate: Predicate) -> set[str]:
    """Field names a predicate reads."""
    return {
        p.field for p in iter_predicates(predicate) if isinstance(p, FieldCompare | FieldBetween)
    }


def referenced_families(predicate: Predicate) -> set[str]:
    """Loop family names a predicate reads."""
    return {
        p.family for p in iter_predicates(predicate) if isinstance(p, LoopTime | LoopCount)
    }


def named_conditions(
    family: str = PROCESSING_FAMILY,
    threshold_seconds: int = PROCESSING_TIME_THRESHOLD_SECONDS,
    max_loops: int = MAX_PROCESSING_LOOPS,
) -> dict[str, TransitionCondition]:
    """Build the closed set of named transition conditions.

    Args:
        family: Loop family whose time and re-entries the conditions read
        threshold_seconds: Processing time after which SUDS above zero escalates
        max_loops: Re-entries after which activation no longer loops back

    Returns:
        Mapping of condition name to condition
    """
    suds_above_zero = FieldCompare(field="suds_current", op=Comparison.GT, value=0)
    activation_above_zero = FieldCompare(field="activation_level", op=Comparison.GT, value=0)

    conditions = [
        TransitionCondition(
            name="suds_above_zero_continue",
            predicate=AllOf(
                predicates=[
                    suds_above_zero,
                    LoopTime(family=family, op=Comparison.LT, seconds=threshold_seconds),
                ]
            ),
            description="SUDS above zero with processing time under the threshold",
        ),
        TransitionCondition(
            name="suds_above_zero_timeout",
            predicate=AllOf(
                predicates=[
                    suds_above_zero,
                    LoopTime(family=family, op=Comparison.GE, seconds=threshold_seconds),
                ]
            ),
            description="SUDS above zero with processing time at or over the threshold",
        ),
        TransitionCondition(
            name="suds_zero",
            predicate=FieldCompare(field="suds_current", op=Comparison.EQ, value=0),
            description="SUDS reached zero",
        ),
        TransitionCondition(
            name="activation_remains",
            predicate=AllOf(
                predicates=[
                    activation_above_zero,
                    LoopCount(family=family, op=Comparison.LT, count=max_loops),
                ]
            ),
            description="Activation above zero and loop limit not reached",
        ),
        TransitionCondition(
            name="activation_high",
            predicate=FieldCompare(field="activation_level", op=Comparison.GE, value=6),
            description="Activation 6 or higher",
        ),
        TransitionCondition(
            name="activation_moderate",
            predicate=FieldBetween(field="activation_level", minimum=3, maximum=5),
            description="Activation between 3 and 5",
        ),
        TransitionCondition(
            name="activation_low",
            predicate=FieldBetween(field="activation_level", minimum=1, maximum=2),
            description="Activation between 1 and 2",
        ),
        TransitionCondition(
            name="activation_cleared",
            predicate=FieldCompare(field="activation_level", op=Comparison.EQ, value=0),
            description="Activation reached zero",
        ),
    ]
    return {condition.name: condition for condition in conditions}
