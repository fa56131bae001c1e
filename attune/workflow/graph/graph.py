"""Immutable phase graph."""

from collections.abc import Iterable

from attune.workflow.errors import PhaseNotFoundError
from attune.workflow.models import FieldRequirement, Phase, PhaseConstraint, TransitionEdge


class PhaseGraph:
    """Phases, their requirements and constraints, and transition edges.

    Built by `attune.workflow.graph.loader.build_graph` after validation and
    never mutated afterwards. A controller replaces the whole graph to
    reload configuration.

    Requirements and constraints keep declaration order. Outgoing edges
    are active edges ordered by priority descending, then declaration order.
    """

    def __init__(
        self,
        *,
        name: str,
        entry_phase: str,
        completion_phase: str,
        phases: Iterable[Phase],
        requirements: Iterable[FieldRequirement],
        constraints: Iterable[PhaseConstraint],
        edges: Iterable[TransitionEdge],
    ) -> None:
        self.name = name
        self.entry_phase = entry_phase
        self.completion_phase = completion_phase
        self._phases: dict[str, Phase] = {phase.id: phase for phase in phases}

        requirements_by_phase: dict[str, list[FieldRequirement]] = {}
        for requirement in requirements:
            requirements_by_phase.setdefault(requirement.phase_id, []).append(requirement)
        self._requirements = {k: tuple(v) for k, v in requirements_by_phase.items()}

        constraints_by_phase: dict[str, list[PhaseConstraint]] = {}
        for constraint in constraints:
            if constraint.is_active:
                constraints_by_phase.setdefault(constraint.phase_id, []).append(constraint)
        self._constraints = {k: tuple(v) for k, v in constraints_by_phase.items()}

        edges_by_phase: dict[str, list[TransitionEdge]] = {}
        for edge in edges:
            if edge.is_active:
                edges_by_phase.setdefault(edge.from_phase, []).append(edge)
        # sorted() is stable, so equal priorities keep declaration order
        self._edges = {
            k: tuple(sorted(v, key=lambda e: -e.priority)) for k, v in edges_by_phase.items()
        }

    def __contains__(self, phase_id: object) -> bool:
        return phase_id in self._phases

    def __repr__(self) -> str:
        return f"PhaseGraph(name={self.name!r}, phases={len(self._phases)})"

    @property
    def phases(self) -> list[Phase]:
        """Phases in declaration order."""
        return list(self._phases.values())

    def get_phase(self, phase_id: str) -> Phase | None:
        """Get a phase by ID."""
        return self._phases.get(phase_id)

    def require_phase(self, phase_id: str) -> Phase:
        """Get a phase by ID, raising PhaseNotFoundError if absent."""
        phase = self._phases.get(phase_id)
        if phase is None:
            raise PhaseNotFoundError(phase_id)
        return phase

    def get_requirements(self, phase_id: str) -> list[FieldRequirement]:
        """Field requirements of a phase in declaration order."""
        return list(self._requirements.get(phase_id, ()))

    def get_requirement(self, phase_id: str, field_name: str) -> FieldRequirement | None:
        """Requirement for a field name within a phase."""
        for requirement in self._requirements.get(phase_id, ()):
            if requirement.name == field_name:
                return requirement
        return None

    def find_requirement(self, field_name: str) -> FieldRequirement | None:
        """First requirement declaring a field name, in phase declaration order."""
        for phase_id in self._phases:
            requirement = self.get_requirement(phase_id, field_name)
            if requirement is not None:
                return requirement
        return None

    def get_constraints(self, phase_id: str) -> list[PhaseConstraint]:
        """Active constraints of a phase."""
        return list(self._constraints.get(phase_id, ()))

    def get_outgoing_edges(self, phase_id: str) -> list[TransitionEdge]:
        """Active outgoing edges, priority descending then declaration order."""
        return list(self._edges.get(phase_id, ()))

    def is_terminal(self, phase_id: str) -> bool:
        """Whether a phase has no outgoing edges."""
        return not self._edges.get(phase_id)

    def loop_families(self) -> set[str]:
        """Loop family names declared by loopable phases."""
        return {phase.family for phase in self._phases.values() if phase.family}
