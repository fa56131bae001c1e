"""Per-session workflow state models."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from attune.workflow.models.enums import SessionStatus, ValueType


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


Clock = Callable[[], datetime]


class SessionFieldValue(BaseModel):
    """A collected field value.

    One record per (session_id, field_name); later submissions overwrite.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    session_id: str = Field(..., description="Owning session")
    phase_id: str = Field(..., description="Phase the value was collected in")
    field_name: str = Field(..., description="Field name")
    value: Any = Field(..., description="Normalized value")
    value_type: ValueType = Field(..., description="Declared or inferred type")
    created_at: datetime = Field(default_factory=utc_now, description="First write")
    updated_at: datetime = Field(default_factory=utc_now, description="Last write")


class SessionPhaseState(BaseModel):
    """Engagement and timing state of one visit to one phase."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="Visit identifier")
    session_id: str = Field(..., description="Owning session")
    phase_id: str = Field(..., description="Visited phase")
    visit_number: int = Field(default=1, ge=1, description="Nth visit to this phase")
    message_count: int = Field(default=0, ge=0, description="Turns recorded in this visit")
    phase_start_time: datetime = Field(..., description="Entry time")
    phase_end_time: datetime | None = Field(default=None, description="Set when finalized")
    duration_seconds: float = Field(default=0.0, ge=0, description="Final duration")
    requirements_met: bool = Field(default=False, description="Last validation result")
    minimum_turns_met: bool = Field(default=False, description="message_count >= minimum")
    can_transition: bool = Field(default=False, description="Last evaluation selected an edge")
    last_message_time: datetime | None = Field(default=None, description="Last turn time")

    @property
    def is_live(self) -> bool:
        return self.phase_end_time is None


class LoopTimer(BaseModel):
    """Aggregated time and re-entry count of a loop family."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    family: str = Field(..., description="Loop family name")
    accumulated_seconds: float = Field(default=0.0, ge=0, description="Finished visit time")
    loop_count: int = Field(default=0, ge=0, description="Re-entries")


class PhaseVisit(BaseModel):
    """Entry in a session's phase history."""

    phase_id: str = Field(..., description="Entered phase")
    entered_at: datetime = Field(..., description="Entry time")
    from_phase: str | None = Field(default=None, description="Previous phase")
    edge_id: str | None = Field(default=None, description="Edge that was taken")
    condition: str | None = Field(default=None, description="Condition that matched")


class SessionProgress(BaseModel):
    """Session aggregate owned by the workflow engine."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    session_id: str = Field(..., description="Session identifier")
    current_phase: str = Field(..., description="Phase the session is in")
    status: SessionStatus = Field(default=SessionStatus.ACTIVE, description="Lifecycle")
    started_at: datetime = Field(default_factory=utc_now, description="Session start")
    completed_at: datetime | None = Field(default=None, description="Completion time")
    transition_count: int = Field(default=0, ge=0, description="Committed transitions")
    history: list[PhaseVisit] = Field(default_factory=list, description="Phase entries")
    loop_timers: dict[str, LoopTimer] = Field(
        default_factory=dict, description="family -> loop timer"
    )

    def visited(self, phase_id: str) -> bool:
        """Whether the session entered this phase at any point."""
        return any(visit.phase_id == phase_id for visit in self.history)

    def loop_timer(self, family: str) -> LoopTimer:
        """Get or create the loop timer for a family."""
        timer = self.loop_timers.get(family)
        if timer is None:
            timer = LoopTimer(family=family)
            self.loop_timers[family] = timer
        return timer
