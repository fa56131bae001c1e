"""Phase graph: immutable workflow configuration and its loaders."""

from attune.workflow.graph.graph import PhaseGraph
from attune.workflow.graph.loader import (
    PRESETS,
    GraphDefinition,
    PhaseGraphLoader,
    build_graph,
    conditions_for,
    load_graph,
    load_graph_from_toml,
    load_preset_definition,
    parse_graph_definition,
    seed_config_store,
    validate_graph_definition,
)

__all__ = [
    "PRESETS",
    "GraphDefinition",
    "PhaseGraph",
    "PhaseGraphLoader",
    "build_graph",
    "conditions_for",
    "load_graph",
    "load_graph_from_toml",
    "load_preset_definition",
    "parse_graph_definition",
    "seed_config_store",
    "validate_graph_definition",
]
