"""Enums for the phase workflow domain."""

from enum import Enum


class PhaseType(str, Enum):
    """Kind of interaction a phase carries.

    - CONVERSATIONAL: Normal interactive exchange with the coach
    - TIMED_WAITING: Non-interactive waiting period shown by the UI
    """

    CONVERSATIONAL = "conversational"
    TIMED_WAITING = "timed_waiting"

    @property
    def is_interactive(self) -> bool:
        """Whether the user converses during this phase."""
        return self is PhaseType.CONVERSATIONAL

    @property
    def requires_timer(self) -> bool:
        """Whether the UI should run a countdown for this phase."""
        return self is PhaseType.TIMED_WAITING


class VisualizationType(str, Enum):
    """Calming visualization shown during a timed waiting phase."""

    BREATHING_CIRCLE = "breathing_circle"
    OCEAN_WAVES = "ocean_waves"
    FOCUS_POINT = "focus_point"


class ValueType(str, Enum):
    """Primitive value types a field requirement may declare."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"


class ConstraintType(str, Enum):
    """Engagement thresholds a phase can declare."""

    MINIMUM_EXCHANGES = "minimum_exchanges"
    MINIMUM_DURATION_SECONDS = "minimum_duration_seconds"


class BehaviorType(str, Enum):
    """How a constraint affects transitions.

    - BLOCKING: Must hold before a transition is permitted
    - ADVISORY: Surfaced as a hint only
    - WARNING: Surfaced as a warning only
    """

    BLOCKING = "blocking"
    ADVISORY = "advisory"
    WARNING = "warning"


class BlockReason(str, Enum):
    """Why a transition evaluation held the session in place."""

    FIELD_VALIDATION = "field_validation"
    CONSTRAINT = "constraint"
    NO_MATCHING_EDGE = "no_matching_edge"


class SessionStatus(str, Enum):
    """Lifecycle of a session's workflow."""

    ACTIVE = "active"
    COMPLETED = "completed"


class Comparison(str, Enum):
    """Comparison operators used by field predicates."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"
