"""Phase guidance for the conversational collaborator.

Turns a transition decision into what to ask next: the missing fields
with a hint per field, turn progress and unmet constraints. The text
rendering is meant to be placed in the coach's context as is.
"""

from pydantic import BaseModel, Field

from attune.workflow.graph.graph import PhaseGraph
from attune.workflow.models import (
    BlockReason,
    ConstraintStatus,
    ConstraintType,
    FieldRequirement,
    PhaseType,
    TransitionDecision,
    ValueSchema,
    ValueType,
)


class FieldHint(BaseModel):
    """A field the coach still has to collect."""

    name: str
    description: str | None = None
    required: bool = True
    invalid: bool = Field(default=False, description="A value is stored but fails the schema")
    hint: str


class PhaseGuidance(BaseModel):
    """What the current phase still needs before it can be left."""

    phase_id: str
    display_name: str
    phase_type: PhaseType
    ready_to_transition: bool
    next_phase: str | None = None
    blocked: BlockReason | None = None
    fields: list[FieldHint] = Field(default_factory=list)
    optional_fields: list[str] = Field(default_factory=list)
    current_turns: int = 0
    minimum_turns: int = 0
    blocking_constraints: list[str] = Field(default_factory=list)
    constraint_hints: list[str] = Field(default_factory=list)
    wait_duration_seconds: int = 0
    pre_wait_message: str | None = None
    post_wait_prompt: str | None = None

    @property
    def turns_needed(self) -> int:
        return max(self.minimum_turns - self.current_turns, 0)

    def render(self) -> str:
        """Plain text guidance."""
        lines = [f"PHASE: {self.display_name} ({self.phase_id})"]

        if self.ready_to_transition:
            lines.append(f"READY: all requirements met, next phase is {self.next_phase}.")
        elif self.blocked == BlockReason.NO_MATCHING_EDGE:
            lines.append("NO TRANSITION: no outgoing transition applies in the current state.")
        else:
            lines.append("NOT READY:")

        if self.fields:
            lines.append("Data still needed:")
            for hint in self.fields:
                status = "invalid" if hint.invalid else "missing"
                lines.append(f"- {hint.name} ({status}): {hint.hint}")
            lines.append(
                "Only call collect_structured_data after the client has provided this information."
            )

        for description in self.blocking_constraints:
            lines.append(f"Constraint: {description}")

        if self.turns_needed:
            lines.append(
                f"Turns: {self.current_turns}/{self.minimum_turns} "
                f"({self.turns_needed} more recommended)"
            )
        else:
            lines.append(f"Turns: {self.current_turns}/{self.minimum_turns}")

        for description in self.constraint_hints:
            lines.append(f"Hint: {description}")

        if self.phase_type.requires_timer and self.wait_duration_seconds:
            lines.append(f"Timed waiting: {self.wait_duration_seconds}s")
            if self.pre_wait_message:
                lines.append(f"Before waiting: {self.pre_wait_message}")
            if self.post_wait_prompt:
                lines.append(f"After waiting: {self.post_wait_prompt}")

        return "\n".join(lines)


def ask_hint(schema: ValueSchema) -> str:
    """How to ask for a value of this schema."""
    if schema.type == ValueType.BOOLEAN:
        return "Ask for an explicit yes or no and wait for the answer"
    if schema.type == ValueType.ENUM:
        options = ", ".join(str(option) for option in schema.enum or ())
        return f"Establish which applies: {options}"
    if schema.type in (ValueType.INTEGER, ValueType.NUMBER):
        kind = "a whole number" if schema.type == ValueType.INTEGER else "a number"
        if schema.minimum is not None and schema.maximum is not None:
            return (
                f"Ask for {kind} from {_format(schema.minimum)} to {_format(schema.maximum)}"
            )
        return f"Ask for {kind}"
    return "Wait for the client to describe this in their own words"


def _format(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _describe_constraint(status: ConstraintStatus) -> str:
    if status.constraint_type == ConstraintType.MINIMUM_EXCHANGES:
        measured = f"{int(status.actual)}/{status.threshold} exchanges"
    else:
        measured = f"{int(status.actual)}s/{status.threshold}s in phase"
    if status.description:
        return f"{status.description} ({measured})"
    return measured


def _field_hint(requirement: FieldRequirement, invalid: bool) -> FieldHint:
    return FieldHint(
        name=requirement.name,
        description=requirement.description or requirement.value_schema.description,
        required=requirement.required,
        invalid=invalid,
        hint=ask_hint(requirement.value_schema),
    )


def build_phase_guidance(graph: PhaseGraph, decision: TransitionDecision) -> PhaseGuidance:
    """Build guidance for the phase a decision was evaluated in."""
    phase = graph.require_phase(decision.phase_id)
    requirements = decision.requirements
    constraints = decision.constraints

    hints = []
    for requirement in graph.get_requirements(phase.id):
        if requirement.name in requirements.missing:
            hints.append(_field_hint(requirement, invalid=False))
        elif requirement.name in requirements.invalid:
            hints.append(_field_hint(requirement, invalid=True))

    return PhaseGuidance(
        phase_id=phase.id,
        display_name=phase.display_name,
        phase_type=phase.type,
        ready_to_transition=decision.selected,
        next_phase=decision.to_phase,
        blocked=decision.blocked,
        fields=hints,
        optional_fields=list(requirements.optional_missing),
        current_turns=constraints.message_count,
        minimum_turns=phase.minimum_turns,
        blocking_constraints=[_describe_constraint(s) for s in constraints.blocking_unmet],
        constraint_hints=[_describe_constraint(s) for s in constraints.hints],
        wait_duration_seconds=phase.wait_duration_seconds,
        pre_wait_message=phase.pre_wait_message,
        post_wait_prompt=phase.post_wait_prompt,
    )
