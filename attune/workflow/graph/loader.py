"""Phase graph loading and validation.

A graph is loaded from a built-in preset, a TOML definition file, or a
ConfigStore. All sources go through `build_graph`, which validates the
whole definition and raises ConfigurationError listing every problem
found. No partial graph is ever returned.
"""

import tomllib
from collections import Counter
from importlib.resources import files
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from attune.config.models.workflow import WorkflowConfig
from attune.observability.logging import get_logger
from attune.workflow.errors import ConfigurationError
from attune.workflow.graph.graph import PhaseGraph
from attune.workflow.models import (
    FieldRequirement,
    Phase,
    PhaseConstraint,
    TransitionCondition,
    TransitionEdge,
)
from attune.workflow.stores import ConfigStore
from attune.workflow.transitions.predicates import named_conditions, referenced_families

logger = get_logger(__name__)


class GraphDefinition(BaseModel):
    """Unvalidated contents of a phase graph."""

    name: str = Field(default="custom", description="Graph name")
    entry_phase: str = Field(..., description="Phase every session starts in")
    completion_phase: str = Field(..., description="Terminal phase")
    phases: list[Phase] = Field(default_factory=list)
    requirements: list[FieldRequirement] = Field(default_factory=list)
    constraints: list[PhaseConstraint] = Field(default_factory=list)
    transitions: list[TransitionEdge] = Field(default_factory=list)


def detect_unreachable_phases(definition: GraphDefinition) -> list[str]:
    """Detect phases that cannot be reached from the entry phase.

    Uses BFS over active edges from the entry phase, then returns any
    phases that weren't visited, in declaration order.
    """
    successors: dict[str, list[str]] = {}
    for edge in definition.transitions:
        if edge.is_active:
            successors.setdefault(edge.from_phase, []).append(edge.to_phase)

    reachable: set[str] = set()
    queue = [definition.entry_phase]

    while queue:
        phase_id = queue.pop(0)
        if phase_id in reachable:
            continue
        reachable.add(phase_id)
        queue.extend(p for p in successors.get(phase_id, []) if p not in reachable)

    return [phase.id for phase in definition.phases if phase.id not in reachable]


def validate_graph_definition(definition: GraphDefinition) -> list[str]:
    """Validate phase graph structure.

    Checks for:
    - At least one phase, no duplicate phase ids
    - Entry and completion phases exist
    - Requirements and constraints belong to known phases
    - Field names are unique within a phase
    - Edge endpoints exist, edge ids are unique
    - At most one active unconditional edge per source phase
    - Completion phase has no active outgoing edges
    - Loop predicates read loop families declared by loopable phases
    - Every phase is reachable from the entry phase

    Returns:
        List of validation error messages (empty if valid)
    """
    errors: list[str] = []

    if not definition.phases:
        errors.append("Graph has no phases")
        return errors

    phase_counts = Counter(phase.id for phase in definition.phases)
    for phase_id, count in phase_counts.items():
        if count > 1:
            errors.append(f"Duplicate phase id '{phase_id}'")
    phase_ids = set(phase_counts)

    if definition.entry_phase not in phase_ids:
        errors.append(f"Entry phase '{definition.entry_phase}' not found")
    if definition.completion_phase not in phase_ids:
        errors.append(f"Completion phase '{definition.completion_phase}' not found")

    seen_fields: set[tuple[str, str]] = set()
    for requirement in definition.requirements:
        if requirement.phase_id not in phase_ids:
            errors.append(
                f"Field '{requirement.name}' belongs to unknown phase '{requirement.phase_id}'"
            )
        key = (requirement.phase_id, requirement.name)
        if key in seen_fields:
            errors.append(
                f"Duplicate field '{requirement.name}' in phase '{requirement.phase_id}'"
            )
        seen_fields.add(key)

    for constraint in definition.constraints:
        if constraint.phase_id not in phase_ids:
            errors.append(
                f"Constraint {constraint.constraint_type.value} belongs to unknown phase "
                f"'{constraint.phase_id}'"
            )

    families = {phase.family for phase in definition.phases if phase.family}
    edge_counts = Counter(edge.edge_id for edge in definition.transitions)
    for edge_id, count in edge_counts.items():
        if count > 1:
            errors.append(f"Duplicate transition id '{edge_id}'")

    unconditional: Counter[str] = Counter()
    for edge in definition.transitions:
        if edge.from_phase not in phase_ids:
            errors.append(
                f"Transition '{edge.edge_id}' starts at unknown phase '{edge.from_phase}'"
            )
        if edge.to_phase not in phase_ids:
            errors.append(f"Transition '{edge.edge_id}' leads to unknown phase '{edge.to_phase}'")
        if not edge.is_active:
            continue
        if edge.condition is None:
            unconditional[edge.from_phase] += 1
        else:
            for family in sorted(referenced_families(edge.condition.predicate) - families):
                errors.append(
                    f"Transition '{edge.edge_id}' condition '{edge.condition.name}' "
                    f"reads unknown loop family '{family}'"
                )
        if edge.from_phase == definition.completion_phase:
            errors.append(
                f"Completion phase '{definition.completion_phase}' has outgoing "
                f"transition '{edge.edge_id}'"
            )

    for phase_id, count in unconditional.items():
        if count > 1:
            errors.append(f"Phase '{phase_id}' has {count} active unconditional transitions")

    if definition.entry_phase in phase_ids:
        unreachable = detect_unreachable_phases(definition)
        if unreachable:
            errors.append(
                f"Unreachable phase(s) from '{definition.entry_phase}': " + ", ".join(unreachable)
            )

    return errors


def build_graph(definition: GraphDefinition) -> PhaseGraph:
    """Validate a definition and build the immutable graph.

    Raises:
        ConfigurationError: If the definition has any problem
    """
    problems = validate_graph_definition(definition)
    if problems:
        logger.error(
            "phase_graph_invalid",
            graph=definition.name,
            problem_count=len(problems),
            problems=problems,
        )
        raise ConfigurationError(problems)

    graph = PhaseGraph(
        name=definition.name,
        entry_phase=definition.entry_phase,
        completion_phase=definition.completion_phase,
        phases=definition.phases,
        requirements=definition.requirements,
        constraints=definition.constraints,
        edges=definition.transitions,
    )
    logger.info(
        "phase_graph_loaded",
        graph=definition.name,
        phase_count=len(definition.phases),
        transition_count=len(definition.transitions),
    )
    return graph


def _format_validation_error(section: str, index: int, error: ValidationError) -> list[str]:
    problems = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        where = f"{section}[{index}]" + (f".{location}" if location else "")
        problems.append(f"{where}: {detail['msg']}")
    return problems


def parse_graph_definition(
    data: dict[str, Any],
    conditions: dict[str, TransitionCondition],
) -> GraphDefinition:
    """Parse raw graph data, resolving condition names.

    Transition `condition` entries are either the name of a condition in
    `conditions` or an inline condition table.

    Raises:
        ConfigurationError: If any entry fails to parse or names an
            unknown condition
    """
    problems: list[str] = []
    parsed: dict[str, list[Any]] = {}
    models: dict[str, type[BaseModel]] = {
        "phases": Phase,
        "requirements": FieldRequirement,
        "constraints": PhaseConstraint,
        "transitions": TransitionEdge,
    }

    for section, model in models.items():
        parsed[section] = []
        for index, raw in enumerate(data.get(section, [])):
            raw = dict(raw)
            if section == "transitions" and isinstance(raw.get("condition"), str):
                condition_name = raw["condition"]
                if condition_name not in conditions:
                    problems.append(
                        f"transitions[{index}]: unknown condition '{condition_name}'"
                    )
                    continue
                raw["condition"] = conditions[condition_name]
            try:
                parsed[section].append(model.model_validate(raw))
            except ValidationError as e:
                problems.extend(_format_validation_error(section, index, e))

    for key in ("entry_phase", "completion_phase"):
        if not data.get(key):
            problems.append(f"Missing '{key}'")

    if problems:
        logger.error("phase_graph_invalid", graph=data.get("name"), problems=problems)
        raise ConfigurationError(problems)

    return GraphDefinition(
        name=data.get("name", "custom"),
        entry_phase=data["entry_phase"],
        completion_phase=data["completion_phase"],
        **parsed,
    )


def conditions_for(config: WorkflowConfig) -> dict[str, TransitionCondition]:
    """Named conditions parameterized by workflow configuration."""
    return named_conditions(
        family=config.processing_loop_family,
        threshold_seconds=config.processing_time_threshold_seconds,
        max_loops=config.max_processing_loops,
    )


def load_graph_definition_from_toml(
    path: Path,
    conditions: dict[str, TransitionCondition] | None = None,
) -> GraphDefinition:
    """Read and parse a TOML graph definition file.

    Raises:
        ConfigurationError: If the file is missing, is not valid TOML,
            or does not parse
    """
    if not path.exists():
        raise ConfigurationError([f"Graph definition not found: {path}"])
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError([f"Invalid TOML in {path}: {e}"]) from e
    return parse_graph_definition(data, conditions or named_conditions())


def load_graph_from_toml(
    path: Path,
    conditions: dict[str, TransitionCondition] | None = None,
) -> PhaseGraph:
    """Load and validate a graph from a TOML definition file."""
    return build_graph(load_graph_definition_from_toml(path, conditions))


class PhaseGraphLoader:
    """Build a phase graph from the configuration tables of a ConfigStore."""

    def __init__(self, config_store: ConfigStore) -> None:
        self._config_store = config_store

    async def load(
        self,
        entry_phase: str,
        completion_phase: str,
        name: str = "stored",
    ) -> PhaseGraph:
        """Read all configuration tables and build the graph.

        Raises:
            ConfigurationError: If the stored configuration is invalid
        """
        definition = GraphDefinition(
            name=name,
            entry_phase=entry_phase,
            completion_phase=completion_phase,
            phases=await self._config_store.get_phases(),
            requirements=await self._config_store.get_field_requirements(),
            constraints=await self._config_store.get_constraints(),
            transitions=await self._config_store.get_transition_edges(),
        )
        return build_graph(definition)


async def seed_config_store(store: ConfigStore, definition: GraphDefinition) -> None:
    """Write every record of a definition into a ConfigStore."""
    for phase in definition.phases:
        await store.save_phase(phase)
    for requirement in definition.requirements:
        await store.save_field_requirement(requirement)
    for constraint in definition.constraints:
        await store.save_constraint(constraint)
    for edge in definition.transitions:
        await store.save_transition_edge(edge)
    logger.info(
        "config_store_seeded",
        graph=definition.name,
        phase_count=len(definition.phases),
    )


PRESETS = ("eight_stage", "ten_phase")


def load_preset_definition(
    name: str,
    conditions: dict[str, TransitionCondition] | None = None,
) -> GraphDefinition:
    """Parse a built-in graph definition by preset name.

    Raises:
        ConfigurationError: If the preset does not exist
    """
    if name not in PRESETS:
        raise ConfigurationError([f"Unknown graph preset '{name}'"])
    text = (files("attune.workflow.graph") / "definitions" / f"{name}.toml").read_text(
        encoding="utf-8"
    )
    return parse_graph_definition(tomllib.loads(text), conditions or named_conditions())


def load_graph(config: WorkflowConfig) -> PhaseGraph:
    """Load the graph selected by workflow configuration.

    `graph_path` wins over the `graph` preset name.
    """
    conditions = conditions_for(config)
    if config.graph_path is not None:
        definition = load_graph_definition_from_toml(config.graph_path, conditions)
    else:
        definition = load_preset_definition(config.graph, conditions)
    return build_graph(definition)
