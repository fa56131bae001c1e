"""Workflow engine exceptions.

Only conditions the caller cannot treat as a normal conversational
outcome are raised. Rejected field values and blocked transitions are
returned as result models instead.
"""


class WorkflowError(Exception):
    """Base exception for workflow engine errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(WorkflowError):
    """Phase graph configuration is invalid. Fatal at load time."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__(
            f"Invalid phase graph ({len(problems)} problem(s)): " + "; ".join(problems)
        )


class PhaseNotFoundError(WorkflowError):
    """A phase id is not part of the loaded graph."""

    def __init__(self, phase_id: str) -> None:
        self.phase_id = phase_id
        super().__init__(f"Phase not found: {phase_id}")


class SessionNotFoundError(WorkflowError):
    """The session has not been started."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionAlreadyStartedError(WorkflowError):
    """start_session was called for a session that already has progress."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session already started: {session_id}")


class SessionCompletedError(WorkflowError):
    """The session is completed and accepts no further submissions."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session already completed: {session_id}")


class IllegalTargetPhaseError(WorkflowError):
    """An explicit transition target is not the edge the evaluator selects."""

    def __init__(self, current_phase: str, target_phase: str, reason: str) -> None:
        self.current_phase = current_phase
        self.target_phase = target_phase
        self.reason = reason
        super().__init__(
            f"Illegal transition from {current_phase} to {target_phase}: {reason}"
        )


class PhaseMismatchError(WorkflowError):
    """Data was submitted for a phase the session is not in."""

    def __init__(self, current_phase: str, submitted_phase: str) -> None:
        self.current_phase = current_phase
        self.submitted_phase = submitted_phase
        super().__init__(
            f"Session is in phase {current_phase}, not {submitted_phase}"
        )


class StoreError(WorkflowError):
    """A session state backend failed."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class SessionBusyError(WorkflowError):
    """Another operation holds the session lock."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session is busy: {session_id}")
