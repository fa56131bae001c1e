"""Transition predicates.

Predicates are a closed set of tagged variants. Each variant carries the
field names and thresholds it reads; they are evaluated by a single
dispatch function in `attune.workflow.transitions.predicates`.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from attune.workflow.models.enums import Comparison

Scalar = bool | int | float | str


class _Predicate(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class FieldCompare(_Predicate):
    """Compare a collected field value against a constant."""

    kind: Literal["field_compare"] = "field_compare"
    field: str = Field(..., min_length=1, description="Collected field to read")
    op: Comparison = Field(..., description="Comparison operator")
    value: Scalar = Field(..., description="Constant to compare against")


class FieldBetween(_Predicate):
    """Numeric field value within an inclusive range."""

    kind: Literal["field_between"] = "field_between"
    field: str = Field(..., min_length=1, description="Collected field to read")
    minimum: float | None = Field(default=None, description="Inclusive lower bound")
    maximum: float | None = Field(default=None, description="Inclusive upper bound")


class LoopTime(_Predicate):
    """Compare the accumulated seconds of a loop family against a threshold."""

    kind: Literal["loop_time"] = "loop_time"
    family: str = Field(..., min_length=1, description="Loop family name")
    op: Comparison = Field(..., description="Comparison operator")
    seconds: int = Field(..., ge=0, description="Threshold in seconds")


class LoopCount(_Predicate):
    """Compare the re-entry count of a loop family against a threshold."""

    kind: Literal["loop_count"] = "loop_count"
    family: str = Field(..., min_length=1, description="Loop family name")
    op: Comparison = Field(..., description="Comparison operator")
    count: int = Field(..., ge=0, description="Threshold")


class AllOf(_Predicate):
    """True when every nested predicate is true."""

    kind: Literal["all_of"] = "all_of"
    predicates: list["Predicate"] = Field(..., min_length=1)


Predicate = Annotated[
    FieldCompare | FieldBetween | LoopTime | LoopCount | AllOf,
    Field(discriminator="kind"),
]

AllOf.model_rebuild()


class TransitionCondition(BaseModel):
    """A named predicate attached to a transition edge."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Condition name, e.g. suds_zero")
    predicate: Predicate = Field(..., description="What the condition evaluates")
    description: str | None = Field(default=None, description="Human description")
