"""Workflow domain models.

Contains all Pydantic models for the phase workflow engine:
- Phase graph configuration (phases, field requirements, constraints, edges)
- Transition predicates
- Per-session state (field values, phase states, loop timers)
- Results returned by the engine
"""

from attune.workflow.models.conditions import (
    AllOf,
    FieldBetween,
    FieldCompare,
    LoopCount,
    LoopTime,
    Predicate,
    TransitionCondition,
)
from attune.workflow.models.enums import (
    BehaviorType,
    BlockReason,
    Comparison,
    ConstraintType,
    PhaseType,
    SessionStatus,
    ValueType,
    VisualizationType,
)
from attune.workflow.models.phase import (
    FieldRequirement,
    Phase,
    PhaseConstraint,
    TransitionEdge,
    ValueSchema,
)
from attune.workflow.models.results import (
    ConstraintReport,
    ConstraintStatus,
    ControllerResult,
    FieldIssue,
    FieldSubmission,
    RequirementReport,
    SessionSnapshot,
    TransitionDecision,
)
from attune.workflow.models.session import (
    Clock,
    LoopTimer,
    PhaseVisit,
    SessionFieldValue,
    SessionPhaseState,
    SessionProgress,
    utc_now,
)

__all__ = [
    # Enums
    "BehaviorType",
    "BlockReason",
    "Comparison",
    "ConstraintType",
    "PhaseType",
    "SessionStatus",
    "ValueType",
    "VisualizationType",
    # Predicates
    "AllOf",
    "FieldBetween",
    "FieldCompare",
    "LoopCount",
    "LoopTime",
    "Predicate",
    "TransitionCondition",
    # Graph configuration
    "FieldRequirement",
    "Phase",
    "PhaseConstraint",
    "TransitionEdge",
    "ValueSchema",
    # Session state
    "Clock",
    "LoopTimer",
    "PhaseVisit",
    "SessionFieldValue",
    "SessionPhaseState",
    "SessionProgress",
    "utc_now",
    # Results
    "ConstraintReport",
    "ConstraintStatus",
    "ControllerResult",
    "FieldIssue",
    "FieldSubmission",
    "RequirementReport",
    "SessionSnapshot",
    "TransitionDecision",
]
