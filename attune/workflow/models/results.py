"""Result models returned by the workflow engine.

Validation failures and blocked transitions are expected outcomes of a
conversation in progress; they are returned as these models, never raised.
"""

from typing import Any

from pydantic import BaseModel, Field

from attune.workflow.models.enums import (
    BehaviorType,
    BlockReason,
    ConstraintType,
    SessionStatus,
    ValueType,
)
from attune.workflow.models.phase import Phase, TransitionEdge
from attune.workflow.models.session import LoopTimer, PhaseVisit, SessionPhaseState


class FieldIssue(BaseModel):
    """Why a field value was rejected or is invalid."""

    field_name: str
    error_type: str = Field(..., description="type_error, range_error, enum_error, ...")
    message: str


class FieldSubmission(BaseModel):
    """Outcome of submitting one field value."""

    field_name: str
    phase_id: str
    value: Any = None
    value_type: ValueType | None = None
    declared: bool = Field(default=True, description="Field is declared by the phase")
    errors: list[FieldIssue] = Field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.errors


class RequirementReport(BaseModel):
    """Satisfaction of a phase's field requirements.

    Lists follow requirement declaration order.
    """

    phase_id: str
    satisfied: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list, description="Required, no value")
    invalid: list[str] = Field(default_factory=list, description="Required, value fails schema")
    optional_missing: list[str] = Field(default_factory=list)
    issues: list[FieldIssue] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing and not self.invalid


class ConstraintStatus(BaseModel):
    """Evaluation of one phase constraint."""

    constraint_type: ConstraintType
    behavior_type: BehaviorType
    threshold: int
    actual: float
    met: bool
    description: str | None = None


class ConstraintReport(BaseModel):
    """Evaluation of a phase's timing and engagement constraints."""

    phase_id: str
    satisfied: bool = Field(..., description="Every blocking constraint holds")
    blocking_unmet: list[ConstraintStatus] = Field(default_factory=list)
    hints: list[ConstraintStatus] = Field(
        default_factory=list, description="Unmet advisory and warning constraints"
    )
    message_count: int = 0
    elapsed_seconds: float = 0.0
    minimum_turns: int = 0

    @property
    def minimum_turns_met(self) -> bool:
        return self.message_count >= self.minimum_turns


class TransitionDecision(BaseModel):
    """Outcome of one transition evaluation."""

    phase_id: str
    to_phase: str | None = None
    edge: TransitionEdge | None = None
    blocked: BlockReason | None = None
    requirements: RequirementReport
    constraints: ConstraintReport

    @property
    def selected(self) -> bool:
        return self.to_phase is not None

    @property
    def condition(self) -> str | None:
        if self.edge is None or self.edge.condition is None:
            return None
        return self.edge.condition.name


class ControllerResult(BaseModel):
    """What happened to a session during one controller call."""

    session_id: str
    phase_id: str = Field(..., description="Phase the call was evaluated in")
    new_phase: str | None = Field(default=None, description="Set when a transition committed")
    next_phase: str | None = Field(
        default=None, description="Phase the evaluator selected, committed or not"
    )
    ready_to_transition: bool = False
    blocked: BlockReason | None = None
    condition: str | None = Field(default=None, description="Matched edge condition")
    satisfied: list[str] = Field(default_factory=list)
    still_missing: list[str] = Field(default_factory=list)
    invalid: list[str] = Field(default_factory=list)
    unmet_constraints: list[ConstraintStatus] = Field(default_factory=list)
    constraint_hints: list[ConstraintStatus] = Field(default_factory=list)
    accepted_fields: list[str] = Field(default_factory=list)
    rejected: list[FieldIssue] = Field(default_factory=list)
    extra_data_stored: list[str] = Field(default_factory=list)
    loop_reentry: bool = False
    reset_fields: list[str] = Field(default_factory=list)
    decision: TransitionDecision | None = Field(
        default=None, exclude=True, description="Evaluation the result was built from"
    )

    @property
    def transitioned(self) -> bool:
        return self.new_phase is not None


class SessionSnapshot(BaseModel):
    """Read-side view of a session for display."""

    session_id: str
    status: SessionStatus
    current_phase: str
    phase: Phase
    phase_state: SessionPhaseState | None = None
    elapsed_in_phase: float = 0.0
    transition_count: int = 0
    history: list[PhaseVisit] = Field(default_factory=list)
    loop_timers: dict[str, LoopTimer] = Field(default_factory=dict)
    loop_seconds: dict[str, float] = Field(
        default_factory=dict, description="Family totals including the live visit"
    )
    values: dict[str, Any] = Field(default_factory=dict)
    requirements: RequirementReport
    constraints: ConstraintReport | None = None
    last_suds_value: int | None = Field(default=None, description="Latest suds_current")
