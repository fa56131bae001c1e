"""In-memory implementations of the workflow stores."""

from attune.workflow.models import (
    FieldRequirement,
    Phase,
    PhaseConstraint,
    SessionFieldValue,
    SessionPhaseState,
    SessionProgress,
    TransitionEdge,
)
from attune.workflow.stores.config_store import ConfigStore
from attune.workflow.stores.session_store import SessionStateStore


class InMemoryConfigStore(ConfigStore):
    """In-memory implementation of ConfigStore for testing and development.

    Records are kept in lists so declaration order is preserved.
    Saving a phase or edge with an existing ID replaces it in place.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._phases: list[Phase] = []
        self._requirements: list[FieldRequirement] = []
        self._constraints: list[PhaseConstraint] = []
        self._edges: list[TransitionEdge] = []

    async def get_phases(self) -> list[Phase]:
        """Get all phases."""
        return list(self._phases)

    async def save_phase(self, phase: Phase) -> str:
        """Save a phase, returning its ID."""
        for index, existing in enumerate(self._phases):
            if existing.id == phase.id:
                self._phases[index] = phase
                return phase.id
        self._phases.append(phase)
        return phase.id

    async def get_field_requirements(self, phase_id: str | None = None) -> list[FieldRequirement]:
        """Get field requirements, optionally for a single phase."""
        return [r for r in self._requirements if phase_id is None or r.phase_id == phase_id]

    async def save_field_requirement(self, requirement: FieldRequirement) -> None:
        """Save a field requirement."""
        self._requirements.append(requirement)

    async def get_constraints(self, phase_id: str | None = None) -> list[PhaseConstraint]:
        """Get phase constraints, optionally for a single phase."""
        return [c for c in self._constraints if phase_id is None or c.phase_id == phase_id]

    async def save_constraint(self, constraint: PhaseConstraint) -> None:
        """Save a phase constraint."""
        self._constraints.append(constraint)

    async def get_transition_edges(self, from_phase: str | None = None) -> list[TransitionEdge]:
        """Get transition edges, optionally from a single phase."""
        return [e for e in self._edges if from_phase is None or e.from_phase == from_phase]

    async def save_transition_edge(self, edge: TransitionEdge) -> str:
        """Save a transition edge, returning its ID."""
        for index, existing in enumerate(self._edges):
            if existing.edge_id == edge.edge_id:
                self._edges[index] = edge
                return edge.edge_id
        self._edges.append(edge)
        return edge.edge_id


class InMemorySessionStateStore(SessionStateStore):
    """In-memory implementation of SessionStateStore for testing and development.

    Stores copies of the records it is given and hands out copies on read,
    so callers only observe state they explicitly saved.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._progress: dict[str, SessionProgress] = {}
        self._fields: dict[str, dict[str, SessionFieldValue]] = {}
        self._phase_states: dict[str, list[SessionPhaseState]] = {}

    async def get_progress(self, session_id: str) -> SessionProgress | None:
        """Get the progress aggregate of a session."""
        progress = self._progress.get(session_id)
        return progress.model_copy(deep=True) if progress else None

    async def save_progress(self, progress: SessionProgress) -> str:
        """Save the progress aggregate, returning the session ID."""
        self._progress[progress.session_id] = progress.model_copy(deep=True)
        return progress.session_id

    async def get_field_value(
        self, session_id: str, field_name: str
    ) -> SessionFieldValue | None:
        """Get a single collected field value."""
        value = self._fields.get(session_id, {}).get(field_name)
        return value.model_copy() if value else None

    async def get_field_values(self, session_id: str) -> dict[str, SessionFieldValue]:
        """Get all collected field values keyed by field name."""
        return {
            name: value.model_copy()
            for name, value in self._fields.get(session_id, {}).items()
        }

    async def save_field_value(self, value: SessionFieldValue) -> None:
        """Upsert a field value keyed by (session_id, field_name)."""
        self._fields.setdefault(value.session_id, {})[value.field_name] = value.model_copy()

    async def delete_field_values(
        self, session_id: str, field_names: list[str]
    ) -> list[str]:
        """Delete field values, returning the names that existed."""
        values = self._fields.get(session_id, {})
        deleted = []
        for name in field_names:
            if values.pop(name, None) is not None:
                deleted.append(name)
        return deleted

    async def save_phase_state(self, state: SessionPhaseState) -> str:
        """Insert or update a phase state by its ID, returning the ID."""
        states = self._phase_states.setdefault(state.session_id, [])
        for index, existing in enumerate(states):
            if existing.id == state.id:
                states[index] = state.model_copy()
                return state.id
        states.append(state.model_copy())
        return state.id

    async def get_live_phase_state(self, session_id: str) -> SessionPhaseState | None:
        """Get the phase state that has not been finalized, if any."""
        for state in reversed(self._phase_states.get(session_id, [])):
            if state.is_live:
                return state.model_copy()
        return None

    async def list_phase_states(
        self, session_id: str, phase_id: str | None = None
    ) -> list[SessionPhaseState]:
        """List phase states in the order they were created."""
        return [
            state.model_copy()
            for state in self._phase_states.get(session_id, [])
            if phase_id is None or state.phase_id == phase_id
        ]

    async def delete_phase_state(self, session_id: str, state_id: str) -> bool:
        """Remove one phase state, returning whether it existed."""
        states = self._phase_states.get(session_id, [])
        remaining = [state for state in states if state.id != state_id]
        self._phase_states[session_id] = remaining
        return len(remaining) != len(states)

    async def delete_session(self, session_id: str) -> bool:
        """Delete all state of a session."""
        existed = session_id in self._progress
        self._progress.pop(session_id, None)
        self._fields.pop(session_id, None)
        self._phase_states.pop(session_id, None)
        return existed
