"""ConfigStore abstract interface."""

from abc import ABC, abstractmethod

from attune.workflow.models import FieldRequirement, Phase, PhaseConstraint, TransitionEdge


class ConfigStore(ABC):
    """Abstract interface for phase graph configuration storage.

    Holds the four configuration tables: phases, field requirements,
    phase constraints and transition edges. Read-mostly; the graph
    loader reads it once per load.

    List operations return records in declaration (insertion) order.
    """

    @abstractmethod
    async def get_phases(self) -> list[Phase]:
        """Get all phases."""
        pass

    @abstractmethod
    async def save_phase(self, phase: Phase) -> str:
        """Save a phase, returning its ID."""
        pass

    @abstractmethod
    async def get_field_requirements(self, phase_id: str | None = None) -> list[FieldRequirement]:
        """Get field requirements, optionally for a single phase."""
        pass

    @abstractmethod
    async def save_field_requirement(self, requirement: FieldRequirement) -> None:
        """Save a field requirement."""
        pass

    @abstractmethod
    async def get_constraints(self, phase_id: str | None = None) -> list[PhaseConstraint]:
        """Get phase constraints, optionally for a single phase."""
        pass

    @abstractmethod
    async def save_constraint(self, constraint: PhaseConstraint) -> None:
        """Save a phase constraint."""
        pass

    @abstractmethod
    async def get_transition_edges(self, from_phase: str | None = None) -> list[TransitionEdge]:
        """Get transition edges, optionally from a single phase."""
        pass

    @abstractmethod
    async def save_transition_edge(self, edge: TransitionEdge) -> str:
        """Save a transition edge, returning its ID."""
        pass
