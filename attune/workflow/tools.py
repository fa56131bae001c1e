"""Tool-call surface for the AI coach.

The coach drives the workflow through two tools. Both return plain
JSON-serializable dicts: workflow errors become structured failures the
coach can act on instead of exceptions.
"""

from typing import Any

from attune.observability.logging import get_logger
from attune.workflow.controller import NEXT_PHASE, SessionPhaseController
from attune.workflow.errors import WorkflowError
from attune.workflow.guidance import build_phase_guidance
from attune.workflow.models import ControllerResult

logger = get_logger(__name__)

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "collect_structured_data",
        "description": (
            "Collect and store data defined by the current phase requirements. "
            "Only collect data the client has explicitly provided in the conversation."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "session_id": {"type": "string", "description": "The session ID"},
                "phase_id": {
                    "type": "string",
                    "description": "The phase the data was collected in",
                },
                "data": {
                    "type": "object",
                    "description": (
                        "Key-value pairs keyed by the field names the phase requires. "
                        "Values must reflect actual client responses."
                    ),
                },
            },
            "required": ["session_id", "data"],
        },
    },
    {
        "name": "therapy_session_transition",
        "description": (
            "Move the session to its next phase once the current phase is complete. "
            "Use 'next' to follow the workflow; an explicit phase is only accepted "
            "if it is the phase the workflow selects."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "session_id": {"type": "string", "description": "The session ID"},
                "target_phase": {
                    "type": "string",
                    "description": "'next' or the ID of the expected next phase",
                    "default": NEXT_PHASE,
                },
            },
            "required": ["session_id"],
        },
    },
]


def _error_payload(error: WorkflowError) -> dict[str, Any]:
    return {
        "success": False,
        "error": error.message,
        "error_type": type(error).__name__,
    }


def _constraints_payload(result: ControllerResult) -> list[dict[str, Any]]:
    return [status.model_dump(mode="json") for status in result.unmet_constraints]


class WorkflowTools:
    """Tool handlers bound to a controller."""

    def __init__(self, controller: SessionPhaseController) -> None:
        self._controller = controller

    async def collect_structured_data(
        self,
        session_id: str,
        data: dict[str, Any],
        phase_id: str | None = None,
    ) -> dict[str, Any]:
        """Store field values and report readiness without changing phase."""
        try:
            result = await self._controller.collect(session_id, data, phase_id=phase_id)
        except WorkflowError as e:
            logger.warning(
                "tool_call_failed",
                tool="collect_structured_data",
                session_id=session_id,
                error_type=type(e).__name__,
            )
            return _error_payload(e)

        return {
            "success": True,
            "session_id": session_id,
            "phase_id": result.phase_id,
            "satisfied": result.satisfied,
            "missing": result.still_missing,
            "invalid": result.invalid,
            "rejected": [issue.model_dump() for issue in result.rejected],
            "extra_data_stored": result.extra_data_stored,
            "ready_to_transition": result.ready_to_transition,
            "next_phase": result.next_phase,
            "blocked_reason": result.blocked.value if result.blocked else None,
            "unmet_constraints": _constraints_payload(result),
        }

    async def therapy_session_transition(
        self,
        session_id: str,
        target_phase: str = NEXT_PHASE,
    ) -> dict[str, Any]:
        """Commit the next phase, or explain why the session must stay."""
        try:
            result = await self._controller.transition(session_id, target_phase)
        except WorkflowError as e:
            logger.warning(
                "tool_call_failed",
                tool="therapy_session_transition",
                session_id=session_id,
                target_phase=target_phase,
                error_type=type(e).__name__,
            )
            return _error_payload(e)

        if result.transitioned:
            return {
                "success": True,
                "session_id": session_id,
                "previous_phase": result.phase_id,
                "new_phase": result.new_phase,
                "condition": result.condition,
                "loop_reentry": result.loop_reentry,
                "reset_fields": result.reset_fields,
            }

        assert result.decision is not None
        guidance = build_phase_guidance(self._controller.graph, result.decision)
        return {
            "success": False,
            "blocked": True,
            "session_id": session_id,
            "phase_id": result.phase_id,
            "reason": result.blocked.value if result.blocked else None,
            "missing_fields": result.still_missing,
            "invalid_fields": result.invalid,
            "unmet_constraints": _constraints_payload(result),
            "guidance": guidance.render(),
            "instructions": (
                "Use collect_structured_data to collect the missing data "
                "before attempting the transition."
            ),
        }

    async def phase_guidance(self, session_id: str) -> dict[str, Any]:
        """Structured and text guidance for the session's current phase."""
        try:
            decision = await self._controller.evaluate(session_id)
        except WorkflowError as e:
            return _error_payload(e)
        guidance = build_phase_guidance(self._controller.graph, decision)
        return {
            "success": True,
            "session_id": session_id,
            "guidance": guidance.model_dump(mode="json"),
            "text": guidance.render(),
        }

    async def call(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Dispatch a tool call by name.

        Unknown tools fail hard with ValueError.
        """
        if name == "collect_structured_data":
            return await self.collect_structured_data(
                arguments["session_id"],
                arguments.get("data") or {},
                phase_id=arguments.get("phase_id"),
            )
        if name == "therapy_session_transition":
            return await self.therapy_session_transition(
                arguments["session_id"],
                arguments.get("target_phase") or NEXT_PHASE,
            )
        logger.error("unknown_tool_called", tool=name)
        raise ValueError(f"Unknown tool: {name}")
