"""Phase graph configuration models.

These are parsed once when a graph is loaded and are treated as
immutable for the lifetime of the graph.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from attune.workflow.models.conditions import TransitionCondition
from attune.workflow.models.enums import (
    BehaviorType,
    ConstraintType,
    PhaseType,
    ValueType,
    VisualizationType,
)

_FROZEN = ConfigDict(frozen=True, extra="ignore")


class ValueSchema(BaseModel):
    """Typed schema of a single field value.

    A JSON-Schema-like subset limited to primitive types and enums.
    """

    model_config = _FROZEN

    type: ValueType = Field(..., description="Declared value type")
    minimum: float | None = Field(default=None, description="Inclusive lower bound")
    maximum: float | None = Field(default=None, description="Inclusive upper bound")
    enum: tuple[str | int | float | bool, ...] | None = Field(
        default=None, description="Allowed values"
    )
    description: str | None = Field(default=None, description="Human description")

    @model_validator(mode="before")
    @classmethod
    def _accept_short_bounds(cls, data: Any) -> Any:
        # Stored schemas use both `min`/`max` and `minimum`/`maximum`
        if isinstance(data, dict):
            data = dict(data)
            if "min" in data:
                data.setdefault("minimum", data.pop("min"))
            if "max" in data:
                data.setdefault("maximum", data.pop("max"))
        return data

    @model_validator(mode="after")
    def _check_consistency(self) -> "ValueSchema":
        if self.type == ValueType.ENUM and not self.enum:
            raise ValueError("enum schema requires a non-empty enum set")
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise ValueError(f"minimum {self.minimum} exceeds maximum {self.maximum}")
        return self


class FieldRequirement(BaseModel):
    """A field a phase collects."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    phase_id: str = Field(..., min_length=1, description="Owning phase")
    name: str = Field(..., min_length=1, description="Field name, unique per phase")
    required: bool = Field(default=False, description="Blocks transition when absent")
    value_schema: ValueSchema = Field(..., alias="schema", description="Value schema")
    description: str | None = Field(default=None, description="Human description")


class PhaseConstraint(BaseModel):
    """A timing or engagement threshold on a phase."""

    model_config = _FROZEN

    phase_id: str = Field(..., min_length=1, description="Owning phase")
    constraint_type: ConstraintType = Field(..., description="What is measured")
    value: int = Field(..., ge=0, description="Threshold")
    behavior_type: BehaviorType = Field(
        default=BehaviorType.ADVISORY, description="Effect on transitions"
    )
    description: str | None = Field(default=None, description="Human description")
    is_active: bool = Field(default=True, description="Inactive constraints are ignored")

    @property
    def is_blocking(self) -> bool:
        return self.is_active and self.behavior_type == BehaviorType.BLOCKING


class Phase(BaseModel):
    """A named stage of the therapeutic conversation workflow."""

    model_config = _FROZEN

    id: str = Field(..., min_length=1, description="Unique phase identifier")
    display_name: str = Field(..., min_length=1, description="Display name")
    description: str | None = Field(default=None, description="Human description")
    position: int = Field(default=0, description="Ordering hint, not used for transitions")
    minimum_turns: int = Field(default=0, ge=0, description="Expected conversation exchanges")
    recommended_duration_seconds: int = Field(
        default=0, ge=0, description="Recommended time in phase"
    )
    icon: str | None = Field(default=None, description="UI icon name")
    color: str | None = Field(default=None, description="UI color")
    type: PhaseType = Field(default=PhaseType.CONVERSATIONAL, description="Interaction kind")
    wait_duration_seconds: int = Field(
        default=0, ge=0, description="Waiting period for timed phases (advisory)"
    )
    pre_wait_message: str | None = Field(default=None, description="Shown before waiting")
    post_wait_prompt: str | None = Field(default=None, description="Shown after waiting")
    visualization_type: VisualizationType | None = Field(
        default=None, description="Visualization during waiting"
    )
    loopable: bool = Field(default=False, description="May be re-entered as a loop")
    loop_family: str | None = Field(
        default=None, description="Family whose time and visits are aggregated"
    )
    clears_on_reentry: tuple[str, ...] = Field(
        default=(), description="Fields cleared when the loop is re-entered"
    )

    @model_validator(mode="after")
    def _check_loop_settings(self) -> "Phase":
        if not self.loopable and (self.loop_family or self.clears_on_reentry):
            raise ValueError(
                f"phase {self.id!r} declares loop settings but is not loopable"
            )
        return self

    @property
    def family(self) -> str | None:
        """Loop family name for loopable phases; defaults to the phase id."""
        if not self.loopable:
            return None
        return self.loop_family or self.id


class TransitionEdge(BaseModel):
    """A directed, optionally conditioned link between two phases."""

    model_config = _FROZEN

    id: str | None = Field(default=None, description="Edge identifier")
    from_phase: str = Field(..., min_length=1, description="Source phase")
    to_phase: str = Field(..., min_length=1, description="Destination phase")
    condition: TransitionCondition | None = Field(
        default=None, description="Predicate; None for the default path"
    )
    priority: int = Field(default=0, description="Higher evaluated first")
    is_active: bool = Field(default=True, description="Inactive edges are ignored")
    description: str | None = Field(default=None, description="Human description")

    @property
    def edge_id(self) -> str:
        return self.id or f"{self.from_phase}_to_{self.to_phase}"

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None
