"""Test factories for creating test data."""

from tests.factories.workflow import (
    EIGHT_STAGE_ANSWERS,
    ConstraintFactory,
    EdgeFactory,
    FakeClock,
    GraphFactory,
    PhaseFactory,
    RequirementFactory,
    SessionStateFactory,
    process_and_check_in,
    walk_to_processing,
)

__all__ = [
    "EIGHT_STAGE_ANSWERS",
    "ConstraintFactory",
    "EdgeFactory",
    "FakeClock",
    "GraphFactory",
    "PhaseFactory",
    "RequirementFactory",
    "SessionStateFactory",
    "process_and_check_in",
    "walk_to_processing",
]
