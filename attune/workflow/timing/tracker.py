"""Per-session phase timing and engagement tracking.

Elapsed time is computed on read from the phase start time; nothing runs
in the background. A loopable phase's visit duration is credited to its
loop family when the visit is finalized.
"""

from typing import TYPE_CHECKING

from attune.observability.logging import get_logger
from attune.observability.metrics import LOOP_REENTRIES
from attune.workflow.errors import PhaseMismatchError, SessionNotFoundError
from attune.workflow.models import (
    Clock,
    ConstraintReport,
    ConstraintStatus,
    ConstraintType,
    LoopTimer,
    Phase,
    SessionPhaseState,
    SessionProgress,
    utc_now,
)
from attune.workflow.stores import SessionStateStore

if TYPE_CHECKING:
    from attune.workflow.graph.graph import PhaseGraph

logger = get_logger(__name__)


class PhaseTimingTracker:
    """Maintain turn counts, phase durations and loop family aggregates.

    Phase states are written through the session state store. Loop
    timers live on the SessionProgress aggregate, which the caller saves.
    """

    def __init__(
        self,
        graph: "PhaseGraph",
        state_store: SessionStateStore,
        clock: Clock = utc_now,
    ) -> None:
        self._graph = graph
        self._state_store = state_store
        self._clock = clock

    def elapsed(self, state: SessionPhaseState) -> float:
        """Seconds from phase start to now, or to the end time once finalized."""
        if not state.is_live:
            return state.duration_seconds
        return max((self._clock() - state.phase_start_time).total_seconds(), 0.0)

    async def live_state(self, session_id: str) -> SessionPhaseState:
        """Get the live phase state, raising if the session has none."""
        state = await self._state_store.get_live_phase_state(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return state

    async def start_phase(self, session_id: str, phase_id: str) -> SessionPhaseState:
        """Create the live state for a new visit to a phase."""
        previous_visits = await self._state_store.list_phase_states(session_id, phase_id)
        state = SessionPhaseState(
            session_id=session_id,
            phase_id=phase_id,
            visit_number=len(previous_visits) + 1,
            phase_start_time=self._clock(),
        )
        await self._state_store.save_phase_state(state)
        logger.debug(
            "phase_state_started",
            session_id=session_id,
            phase_id=phase_id,
            visit_number=state.visit_number,
        )
        return state

    async def record_turn(self, session_id: str, phase_id: str) -> SessionPhaseState:
        """Increment the turn count of the live visit to a phase."""
        state = await self.live_state(session_id)
        if state.phase_id != phase_id:
            raise PhaseMismatchError(state.phase_id, phase_id)
        now = self._clock()
        state.message_count += 1
        state.last_message_time = now
        await self._state_store.save_phase_state(state)
        return state

    async def elapsed_in_phase(self, session_id: str, phase_id: str) -> float:
        """Elapsed seconds of the latest visit to a phase (0 if never visited)."""
        visits = await self._state_store.list_phase_states(session_id, phase_id)
        if not visits:
            return 0.0
        return self.elapsed(visits[-1])

    async def finish_phase(
        self, progress: SessionProgress, state: SessionPhaseState
    ) -> SessionPhaseState:
        """Finalize a live visit and credit loop family time.

        Mutates `progress`; the caller saves it.
        """
        now = self._clock()
        duration = self.elapsed(state)
        state.phase_end_time = now
        state.duration_seconds = duration
        await self._state_store.save_phase_state(state)

        phase = self._graph.get_phase(state.phase_id)
        if phase is not None and phase.family:
            timer = progress.loop_timer(phase.family)
            timer.accumulated_seconds += duration

        logger.debug(
            "phase_state_finished",
            session_id=state.session_id,
            phase_id=state.phase_id,
            duration_seconds=round(duration, 3),
        )
        return state

    def record_loop_visit(self, progress: SessionProgress, phase: Phase) -> LoopTimer:
        """Count a re-entry of a loopable phase.

        The finished visits' durations are already in the family total.
        Mutates `progress`; the caller saves it.
        """
        family = phase.family or phase.id
        timer = progress.loop_timer(family)
        timer.loop_count += 1
        LOOP_REENTRIES.labels(loop_family=family).inc()
        logger.info(
            "loop_reentry_recorded",
            session_id=progress.session_id,
            phase_id=phase.id,
            loop_family=family,
            loop_count=timer.loop_count,
            accumulated_seconds=round(timer.accumulated_seconds, 3),
        )
        return timer

    def loop_seconds(
        self, progress: SessionProgress, live_state: SessionPhaseState | None
    ) -> dict[str, float]:
        """Accumulated seconds per loop family, including the live visit."""
        seconds = {family: t.accumulated_seconds for family, t in progress.loop_timers.items()}
        if live_state is not None and live_state.is_live:
            phase = self._graph.get_phase(live_state.phase_id)
            if phase is not None and phase.family:
                seconds[phase.family] = seconds.get(phase.family, 0.0) + self.elapsed(live_state)
        return seconds

    def check_constraints(self, phase_id: str, state: SessionPhaseState) -> ConstraintReport:
        """Evaluate every active constraint of a phase against a visit.

        Only blocking constraints affect `satisfied`; unmet advisory and
        warning constraints are reported as hints.
        """
        phase = self._graph.require_phase(phase_id)
        elapsed = self.elapsed(state)
        blocking_unmet: list[ConstraintStatus] = []
        hints: list[ConstraintStatus] = []

        for constraint in self._graph.get_constraints(phase_id):
            if constraint.constraint_type == ConstraintType.MINIMUM_EXCHANGES:
                actual: float = state.message_count
            else:
                actual = elapsed
            status = ConstraintStatus(
                constraint_type=constraint.constraint_type,
                behavior_type=constraint.behavior_type,
                threshold=constraint.value,
                actual=actual,
                met=actual >= constraint.value,
                description=constraint.description,
            )
            if status.met:
                continue
            if constraint.is_blocking:
                blocking_unmet.append(status)
            else:
                hints.append(status)

        return ConstraintReport(
            phase_id=phase_id,
            satisfied=not blocking_unmet,
            blocking_unmet=blocking_unmet,
            hints=hints,
            message_count=state.message_count,
            elapsed_seconds=elapsed,
            minimum_turns=phase.minimum_turns,
        )

    async def constraints_satisfied(self, session_id: str, phase_id: str) -> bool:
        """Whether every blocking constraint of the live visit holds."""
        state = await self.live_state(session_id)
        return self.check_constraints(phase_id, state).satisfied
