"""Phase timing and engagement tracking."""

from attune.workflow.timing.tracker import PhaseTimingTracker

__all__ = ["PhaseTimingTracker"]
