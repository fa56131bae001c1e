"""SessionStateStore abstract interface."""

from abc import ABC, abstractmethod

from attune.workflow.models import SessionFieldValue, SessionPhaseState, SessionProgress


class SessionStateStore(ABC):
    """Abstract interface for per-session workflow state.

    Manages three kinds of records, all partitioned by session:
    - field values, keyed by (session_id, field_name), last write wins
    - phase states, one per phase visit, historical visits retained
    - the session progress aggregate (current phase, history, loop timers)
    """

    @abstractmethod
    async def get_progress(self, session_id: str) -> SessionProgress | None:
        """Get the progress aggregate of a session."""
        pass

    @abstractmethod
    async def save_progress(self, progress: SessionProgress) -> str:
        """Save the progress aggregate, returning the session ID."""
        pass

    @abstractmethod
    async def get_field_value(
        self, session_id: str, field_name: str
    ) -> SessionFieldValue | None:
        """Get a single collected field value."""
        pass

    @abstractmethod
    async def get_field_values(self, session_id: str) -> dict[str, SessionFieldValue]:
        """Get all collected field values keyed by field name."""
        pass

    @abstractmethod
    async def save_field_value(self, value: SessionFieldValue) -> None:
        """Upsert a field value keyed by (session_id, field_name)."""
        pass

    @abstractmethod
    async def delete_field_values(
        self, session_id: str, field_names: list[str]
    ) -> list[str]:
        """Delete field values, returning the names that existed."""
        pass

    @abstractmethod
    async def save_phase_state(self, state: SessionPhaseState) -> str:
        """Insert or update a phase state by its ID, returning the ID."""
        pass

    @abstractmethod
    async def get_live_phase_state(self, session_id: str) -> SessionPhaseState | None:
        """Get the phase state that has not been finalized, if any."""
        pass

    @abstractmethod
    async def list_phase_states(
        self, session_id: str, phase_id: str | None = None
    ) -> list[SessionPhaseState]:
        """List phase states in the order they were created."""
        pass

    @abstractmethod
    async def delete_phase_state(self, session_id: str, state_id: str) -> bool:
        """Remove one phase state, returning whether it existed."""
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Delete all state of a session."""
        pass
