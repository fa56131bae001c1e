"""Phase workflow engine.

Tracks, for each live session, which phase the conversation is in, what
data must be collected before advancing, how long the session has spent
where, and which phase comes next.
"""

from attune.workflow.controller import SessionPhaseController
from attune.workflow.errors import (
    ConfigurationError,
    IllegalTargetPhaseError,
    PhaseMismatchError,
    PhaseNotFoundError,
    SessionAlreadyStartedError,
    SessionBusyError,
    SessionCompletedError,
    SessionNotFoundError,
    StoreError,
    WorkflowError,
)
from attune.workflow.factory import create_controller
from attune.workflow.tools import WorkflowTools

__all__ = [
    "ConfigurationError",
    "IllegalTargetPhaseError",
    "PhaseMismatchError",
    "PhaseNotFoundError",
    "SessionAlreadyStartedError",
    "SessionBusyError",
    "SessionCompletedError",
    "SessionNotFoundError",
    "SessionPhaseController",
    "StoreError",
    "WorkflowError",
    "WorkflowTools",
    "create_controller",
]
