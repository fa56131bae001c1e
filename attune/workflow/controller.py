"""Session phase controller.

Orchestrates field collection, turn counting, requirement validation and
transition evaluation for one session at a time. Each operation holds the
session's mutex for its whole read-validate-write sequence.

The phase graph is read once per operation from a single reference;
`swap_graph` replaces that reference atomically, so an operation in
flight keeps evaluating against the graph it started with.
"""

from dataclasses import dataclass, field
from typing import Any

from attune.observability.logging import get_logger
from attune.observability.metrics import (
    ACTIVE_SESSIONS,
    PHASE_TRANSITIONS,
    SUBMIT_LATENCY,
    TRANSITIONS_BLOCKED,
)
from attune.workflow.errors import (
    IllegalTargetPhaseError,
    PhaseMismatchError,
    SessionAlreadyStartedError,
    SessionBusyError,
    SessionCompletedError,
    SessionNotFoundError,
    StoreError,
)
from attune.workflow.fields import FieldStore, FieldValueValidator, RequirementValidator
from attune.workflow.graph.graph import PhaseGraph
from attune.workflow.models import (
    BlockReason,
    Clock,
    ControllerResult,
    FieldIssue,
    PhaseVisit,
    SessionPhaseState,
    SessionProgress,
    SessionSnapshot,
    SessionStatus,
    TransitionDecision,
    utc_now,
)
from attune.workflow.mutex import LocalSessionMutex, SessionMutex
from attune.workflow.stores import SessionStateStore
from attune.workflow.timing import PhaseTimingTracker
from attune.workflow.transitions import TransitionEvaluator

logger = get_logger(__name__)

NEXT_PHASE = "next"


@dataclass(frozen=True)
class _Components:
    """Engine components bound to one graph."""

    graph: PhaseGraph
    fields: FieldStore
    requirements: RequirementValidator
    tracker: PhaseTimingTracker
    evaluator: TransitionEvaluator


@dataclass
class _Collected:
    """Outcome of the collect step of an operation."""

    progress: SessionProgress
    state: SessionPhaseState
    decision: TransitionDecision
    accepted: list[str] = field(default_factory=list)
    rejected: list[FieldIssue] = field(default_factory=list)
    extra: list[str] = field(default_factory=list)


@dataclass
class _Commit:
    """Outcome of a committed transition."""

    new_phase: str
    loop_reentry: bool = False
    reset_fields: list[str] = field(default_factory=list)


class SessionPhaseController:
    """Per-session phase state machine.

    States are the phases of the graph; the transition function is the
    TransitionEvaluator's decision. Side effects never reach beyond the
    session being addressed.
    """

    def __init__(
        self,
        graph: PhaseGraph,
        state_store: SessionStateStore,
        *,
        mutex: SessionMutex | None = None,
        clock: Clock = utc_now,
        count_empty_submit_as_turn: bool = True,
        validator: FieldValueValidator | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            graph: Validated phase graph
            state_store: Per-session state backend
            mutex: Per-session lock (in-process lock if not provided)
            clock: Source of the current time
            count_empty_submit_as_turn: Record a turn for submits without fields
            validator: Field value validator
        """
        self._state_store = state_store
        self._mutex = mutex or LocalSessionMutex()
        self._clock = clock
        self._count_empty_submit_as_turn = count_empty_submit_as_turn
        self._validator = validator or FieldValueValidator()
        self._components = self._build_components(graph)

    def _build_components(self, graph: PhaseGraph) -> _Components:
        requirements = RequirementValidator(graph, self._state_store, self._validator)
        tracker = PhaseTimingTracker(graph, self._state_store, self._clock)
        return _Components(
            graph=graph,
            fields=FieldStore(graph, self._state_store, self._validator, self._clock),
            requirements=requirements,
            tracker=tracker,
            evaluator=TransitionEvaluator(graph, requirements, tracker),
        )

    @property
    def graph(self) -> PhaseGraph:
        """Graph new operations evaluate against."""
        return self._components.graph

    def swap_graph(self, graph: PhaseGraph) -> None:
        """Replace the phase graph for subsequent operations."""
        previous = self._components.graph
        self._components = self._build_components(graph)
        logger.info("phase_graph_swapped", previous=previous.name, current=graph.name)

    async def _load_progress(self, session_id: str) -> SessionProgress:
        progress = await self._state_store.get_progress(session_id)
        if progress is None:
            raise SessionNotFoundError(session_id)
        return progress

    async def _load_active_progress(self, session_id: str) -> SessionProgress:
        progress = await self._load_progress(session_id)
        if progress.status == SessionStatus.COMPLETED:
            raise SessionCompletedError(session_id)
        return progress

    async def start_session(self, session_id: str) -> SessionProgress:
        """Place a new session in the entry phase with zero timers.

        Raises:
            SessionAlreadyStartedError: If the session already has progress
        """
        components = self._components
        async with self._mutex.acquire(session_id) as acquired:
            if not acquired:
                raise SessionBusyError(session_id)
            if await self._state_store.get_progress(session_id) is not None:
                raise SessionAlreadyStartedError(session_id)

            now = self._clock()
            entry = components.graph.entry_phase
            progress = SessionProgress(
                session_id=session_id,
                current_phase=entry,
                started_at=now,
                history=[PhaseVisit(phase_id=entry, entered_at=now)],
            )
            await components.tracker.start_phase(session_id, entry)
            await self._state_store.save_progress(progress)

        ACTIVE_SESSIONS.inc()
        logger.info(
            "session_started",
            session_id=session_id,
            graph=components.graph.name,
            phase_id=entry,
        )
        return progress

    async def submit(
        self,
        session_id: str,
        fields: dict[str, Any] | None = None,
        *,
        phase_id: str | None = None,
    ) -> ControllerResult:
        """Collect fields, record a turn, and commit a transition if one is selected.

        Args:
            session_id: Session identifier
            fields: Field values by name; empty to re-evaluate
            phase_id: Phase the caller believes the session is in

        Returns:
            ControllerResult with `new_phase` set when a transition committed,
            otherwise the reason and what is still missing
        """
        with SUBMIT_LATENCY.labels(operation="submit").time():
            components = self._components
            async with self._mutex.acquire(session_id) as acquired:
                if not acquired:
                    raise SessionBusyError(session_id)
                collected = await self._collect(components, session_id, fields or {}, phase_id)
                commit = None
                if collected.decision.selected:
                    commit = await self._commit(components, collected)
                else:
                    self._record_blocked(collected.decision)
                return self._result(session_id, collected, commit)

    async def collect(
        self,
        session_id: str,
        fields: dict[str, Any] | None = None,
        *,
        phase_id: str | None = None,
    ) -> ControllerResult:
        """Collect fields and record a turn without committing a transition.

        `ready_to_transition` and `next_phase` report what a transition
        would do now.
        """
        with SUBMIT_LATENCY.labels(operation="collect").time():
            components = self._components
            async with self._mutex.acquire(session_id) as acquired:
                if not acquired:
                    raise SessionBusyError(session_id)
                collected = await self._collect(components, session_id, fields or {}, phase_id)
                return self._result(session_id, collected)

    async def transition(self, session_id: str, target: str = NEXT_PHASE) -> ControllerResult:
        """Commit the transition the evaluator selects.

        Does not record a turn.

        Args:
            session_id: Session identifier
            target: "next", or a phase ID that must equal the evaluator's choice

        Raises:
            IllegalTargetPhaseError: If an explicit target is not the phase the
                evaluator selects
        """
        with SUBMIT_LATENCY.labels(operation="transition").time():
            components = self._components
            async with self._mutex.acquire(session_id) as acquired:
                if not acquired:
                    raise SessionBusyError(session_id)
                progress = await self._load_active_progress(session_id)
                current = progress.current_phase
                state = await components.tracker.live_state(session_id)
                values = await components.fields.get_values(session_id)
                decision = components.evaluator.evaluate(current, values, progress, state)
                collected = _Collected(progress=progress, state=state, decision=decision)

                if target != NEXT_PHASE:
                    self._check_explicit_target(components.graph, current, target, decision)

                if not decision.selected:
                    await self._save_state_flags(components, collected)
                    self._record_blocked(decision)
                    return self._result(session_id, collected)

                commit = await self._commit(components, collected)
                return self._result(session_id, collected, commit)

    def _check_explicit_target(
        self,
        graph: PhaseGraph,
        current: str,
        target: str,
        decision: TransitionDecision,
    ) -> None:
        if target not in graph:
            raise IllegalTargetPhaseError(current, target, "unknown phase")
        if not any(edge.to_phase == target for edge in graph.get_outgoing_edges(current)):
            raise IllegalTargetPhaseError(current, target, "no transition edge")
        if decision.selected and decision.to_phase != target:
            raise IllegalTargetPhaseError(
                current, target, f"current state selects {decision.to_phase}"
            )

    async def complete_session(self, session_id: str) -> ControllerResult:
        """Mark the session completed.

        Only allowed in the completion phase with its requirements and
        blocking constraints met; otherwise the blocked result is returned.

        Raises:
            PhaseMismatchError: If the session is not in the completion phase
        """
        components = self._components
        async with self._mutex.acquire(session_id) as acquired:
            if not acquired:
                raise SessionBusyError(session_id)
            progress = await self._load_active_progress(session_id)
            completion = components.graph.completion_phase
            if progress.current_phase != completion:
                raise PhaseMismatchError(progress.current_phase, completion)

            state = await components.tracker.live_state(session_id)
            values = await components.fields.get_values(session_id)
            decision = components.evaluator.evaluate(completion, values, progress, state)
            collected = _Collected(progress=progress, state=state, decision=decision)

            if not decision.requirements.complete or not decision.constraints.satisfied:
                await self._save_state_flags(components, collected)
                return self._result(session_id, collected)

            # The completion phase has no outgoing edges
            decision.blocked = None
            now = self._clock()
            previous_state = state.model_copy()
            try:
                await components.tracker.finish_phase(progress, state)
                progress.status = SessionStatus.COMPLETED
                progress.completed_at = now
                await self._state_store.save_progress(progress)
            except StoreError:
                await self._rollback_commit(session_id, previous_state, None)
                raise

        ACTIVE_SESSIONS.dec()
        logger.info(
            "session_completed",
            session_id=session_id,
            transition_count=progress.transition_count,
            duration_seconds=round((now - progress.started_at).total_seconds(), 3),
        )
        return self._result(session_id, collected)

    async def evaluate(self, session_id: str) -> TransitionDecision:
        """Evaluate the current phase without recording a turn or committing."""
        components = self._components
        progress = await self._load_progress(session_id)
        state = await components.tracker.live_state(session_id)
        values = await components.fields.get_values(session_id)
        return components.evaluator.evaluate(progress.current_phase, values, progress, state)

    async def get_session_snapshot(self, session_id: str) -> SessionSnapshot:
        """Current phase, live phase state, loop timers and collected values."""
        components = self._components
        tracker = components.tracker
        progress = await self._load_progress(session_id)
        phase = components.graph.require_phase(progress.current_phase)
        state = await self._state_store.get_live_phase_state(session_id)
        values = await components.fields.get_values(session_id)

        suds = values.get("suds_current")
        return SessionSnapshot(
            session_id=session_id,
            status=progress.status,
            current_phase=progress.current_phase,
            phase=phase,
            phase_state=state,
            elapsed_in_phase=tracker.elapsed(state) if state else 0.0,
            transition_count=progress.transition_count,
            history=progress.history,
            loop_timers=progress.loop_timers,
            loop_seconds=tracker.loop_seconds(progress, state),
            values=values,
            requirements=components.requirements.check(phase.id, values),
            constraints=tracker.check_constraints(phase.id, state) if state else None,
            last_suds_value=suds if isinstance(suds, int) and not isinstance(suds, bool) else None,
        )

    async def _collect(
        self,
        components: _Components,
        session_id: str,
        fields: dict[str, Any],
        phase_id: str | None,
    ) -> _Collected:
        progress = await self._load_active_progress(session_id)
        current = progress.current_phase
        if phase_id is not None and phase_id != current:
            raise PhaseMismatchError(current, phase_id)

        accepted: list[str] = []
        rejected: list[FieldIssue] = []
        extra: list[str] = []
        for name, raw_value in fields.items():
            submission = await components.fields.submit_field(
                session_id, current, name, raw_value
            )
            if not submission.accepted:
                rejected.extend(submission.errors)
            elif submission.declared:
                accepted.append(name)
            else:
                extra.append(name)

        if fields or self._count_empty_submit_as_turn:
            state = await components.tracker.record_turn(session_id, current)
        else:
            state = await components.tracker.live_state(session_id)

        values = await components.fields.get_values(session_id)
        decision = components.evaluator.evaluate(current, values, progress, state)
        if rejected:
            self._hold_for_rejected(components.graph, decision, rejected)
        collected = _Collected(
            progress=progress,
            state=state,
            decision=decision,
            accepted=accepted,
            rejected=rejected,
            extra=extra,
        )
        await self._save_state_flags(components, collected)
        return collected

    def _hold_for_rejected(
        self,
        graph: PhaseGraph,
        decision: TransitionDecision,
        rejected: list[FieldIssue],
    ) -> None:
        """Treat a required field whose new value was rejected as invalid.

        The phase is never left on a stored value the client just replaced.
        """
        rejected_names = {issue.field_name for issue in rejected}
        requirements = decision.requirements
        held = [
            r.name
            for r in graph.get_requirements(decision.phase_id)
            if r.required and r.name in rejected_names and r.name in requirements.satisfied
        ]
        if not held:
            return

        requirements.satisfied = [n for n in requirements.satisfied if n not in held]
        invalid = set(requirements.invalid) | set(held)
        requirements.invalid = [
            r.name for r in graph.get_requirements(decision.phase_id) if r.name in invalid
        ]
        requirements.issues.extend(issue for issue in rejected if issue.field_name in held)
        decision.to_phase = None
        decision.edge = None
        decision.blocked = BlockReason.FIELD_VALIDATION

    async def _save_state_flags(self, components: _Components, collected: _Collected) -> None:
        decision = collected.decision
        state = collected.state
        state.requirements_met = decision.requirements.complete
        state.minimum_turns_met = decision.constraints.minimum_turns_met
        state.can_transition = decision.selected
        await self._state_store.save_phase_state(state)

    async def _commit(self, components: _Components, collected: _Collected) -> _Commit:
        progress = collected.progress
        decision = collected.decision
        session_id = progress.session_id
        from_phase = progress.current_phase
        destination = components.graph.require_phase(decision.to_phase)

        previous_state = collected.state.model_copy()
        started: SessionPhaseState | None = None
        commit = _Commit(new_phase=destination.id)
        try:
            collected.state.can_transition = True
            await components.tracker.finish_phase(progress, collected.state)

            if destination.loopable and progress.visited(destination.id):
                components.tracker.record_loop_visit(progress, destination)
                commit.loop_reentry = True
                if destination.clears_on_reentry:
                    commit.reset_fields = await components.fields.clear_fields(
                        session_id, list(destination.clears_on_reentry)
                    )

            now = self._clock()
            progress.history.append(
                PhaseVisit(
                    phase_id=destination.id,
                    entered_at=now,
                    from_phase=from_phase,
                    edge_id=decision.edge.edge_id if decision.edge else None,
                    condition=decision.condition,
                )
            )
            progress.current_phase = destination.id
            progress.transition_count += 1
            started = await components.tracker.start_phase(session_id, destination.id)
            # Saving progress is the commit point
            await self._state_store.save_progress(progress)
        except StoreError:
            await self._rollback_commit(session_id, previous_state, started)
            raise

        PHASE_TRANSITIONS.labels(from_phase=from_phase, to_phase=destination.id).inc()
        logger.info(
            "phase_transition_committed",
            session_id=session_id,
            from_phase=from_phase,
            to_phase=destination.id,
            condition=decision.condition,
            loop_reentry=commit.loop_reentry,
            reset_fields=commit.reset_fields,
        )
        return commit

    async def _rollback_commit(
        self,
        session_id: str,
        previous_state: SessionPhaseState,
        started: SessionPhaseState | None,
    ) -> None:
        """Reopen the visit a failed commit finalized and drop the one it started.

        Stored progress still names the previous phase, so this restores the
        pairing of current phase and live state that later turns rely on.
        """
        try:
            if started is not None:
                await self._state_store.delete_phase_state(session_id, started.id)
            await self._state_store.save_phase_state(previous_state)
        except StoreError as e:
            logger.error(
                "phase_transition_rollback_failed",
                session_id=session_id,
                phase_id=previous_state.phase_id,
                error=str(e),
            )
            return
        logger.warning(
            "phase_transition_rolled_back",
            session_id=session_id,
            phase_id=previous_state.phase_id,
        )

    def _record_blocked(self, decision: TransitionDecision) -> None:
        if decision.blocked is None:
            return
        TRANSITIONS_BLOCKED.labels(phase=decision.phase_id, reason=decision.blocked.value).inc()
        logger.debug(
            "transition_blocked",
            phase_id=decision.phase_id,
            reason=decision.blocked.value,
            missing=decision.requirements.missing,
            invalid=decision.requirements.invalid,
        )

    def _result(
        self,
        session_id: str,
        collected: _Collected,
        commit: _Commit | None = None,
    ) -> ControllerResult:
        decision = collected.decision
        requirements = decision.requirements
        return ControllerResult(
            session_id=session_id,
            phase_id=decision.phase_id,
            new_phase=commit.new_phase if commit else None,
            next_phase=decision.to_phase,
            ready_to_transition=decision.selected,
            blocked=None if commit else decision.blocked,
            condition=decision.condition,
            satisfied=list(requirements.satisfied),
            still_missing=list(requirements.missing),
            invalid=list(requirements.invalid),
            unmet_constraints=list(decision.constraints.blocking_unmet),
            constraint_hints=list(decision.constraints.hints),
            accepted_fields=collected.accepted,
            rejected=collected.rejected,
            extra_data_stored=collected.extra,
            loop_reentry=commit.loop_reentry if commit else False,
            reset_fields=commit.reset_fields if commit else [],
            decision=decision,
        )
