"""Phase workflow engine configuration models."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

GraphPreset = Literal["eight_stage", "ten_phase"]


class WorkflowConfig(BaseModel):
    """Which phase graph to run and the thresholds its named conditions read.

    The graph is an external configuration choice: either a built-in
    preset or a TOML graph definition file. When `graph_path` is set it
    wins over `graph`.
    """

    graph: GraphPreset = Field(
        default="eight_stage", description="Built-in phase graph preset"
    )
    graph_path: Path | None = Field(
        default=None, description="TOML graph definition file (overrides preset)"
    )
    processing_loop_family: str = Field(
        default="focused_mindfulness",
        min_length=1,
        description="Loop family read by the built-in named conditions",
    )
    processing_time_threshold_seconds: int = Field(
        default=1200,
        ge=0,
        description="Accumulated processing time before SUDS > 0 escalates",
    )
    max_processing_loops: int = Field(
        default=10,
        ge=1,
        description="Maximum re-entries of the processing loop family",
    )
    count_empty_submit_as_turn: bool = Field(
        default=True,
        description="Record a turn for submits that carry no fields",
    )
