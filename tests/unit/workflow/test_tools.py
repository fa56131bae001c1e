"""Unit tests for the coach tool surface."""

import json

import pytest

from attune.workflow.controller import SessionPhaseController
from attune.workflow.tools import TOOL_DEFINITIONS, WorkflowTools
from tests.factories import FakeClock, process_and_check_in, walk_to_processing

SESSION = "session-1"


@pytest.fixture
def tools(controller: SessionPhaseController) -> WorkflowTools:
    return WorkflowTools(controller)


class TestToolDefinitions:
    """Tests for the advertised tool schemas."""

    def test_names(self) -> None:
        """Should advertise both workflow tools."""
        assert [tool["name"] for tool in TOOL_DEFINITIONS] == [
            "collect_structured_data",
            "therapy_session_transition",
        ]

    def test_required_arguments(self) -> None:
        """Should require a session on every tool."""
        for tool in TOOL_DEFINITIONS:
            assert "session_id" in tool["input_schema"]["required"]


class TestCollectStructuredData:
    """Tests for collect_structured_data."""

    @pytest.mark.asyncio
    async def test_ready_to_transition(
        self, tools: WorkflowTools, controller: SessionPhaseController
    ) -> None:
        """Should report readiness without moving the session."""
        await controller.start_session(SESSION)
        await controller.submit(SESSION, {"consent_given": True})

        payload = await tools.collect_structured_data(
            SESSION, {"selected_issue": "work stress", "issue_intensity": 7}
        )

        assert payload["success"] is True
        assert payload["ready_to_transition"] is True
        assert payload["next_phase"] == "stage_2_information_gathering"
        assert payload["missing"] == []
        snapshot = await controller.get_session_snapshot(SESSION)
        assert snapshot.current_phase == "stage_1_deciding_issue"

    @pytest.mark.asyncio
    async def test_rejected_value(
        self, tools: WorkflowTools, controller: SessionPhaseController
    ) -> None:
        """Should return rejected fields as data."""
        await controller.start_session(SESSION)
        await controller.submit(SESSION, {"consent_given": True})

        payload = await tools.collect_structured_data(
            SESSION, {"selected_issue": "work stress", "issue_intensity": 15}
        )

        assert payload["success"] is True
        assert payload["ready_to_transition"] is False
        assert payload["blocked_reason"] == "field_validation"
        assert payload["missing"] == ["issue_intensity"]
        assert payload["rejected"][0]["field_name"] == "issue_intensity"
        assert payload["rejected"][0]["error_type"] == "range_error"

    @pytest.mark.asyncio
    async def test_wrong_phase(
        self, tools: WorkflowTools, controller: SessionPhaseController
    ) -> None:
        """Should turn workflow errors into a failure payload."""
        await controller.start_session(SESSION)

        payload = await tools.collect_structured_data(
            SESSION, {"selected_issue": "x"}, phase_id="stage_1_deciding_issue"
        )

        assert payload["success"] is False
        assert payload["error_type"] == "PhaseMismatchError"
        assert "pre_session" in payload["error"]

    @pytest.mark.asyncio
    async def test_payload_is_json_serializable(
        self, tools: WorkflowTools, controller: SessionPhaseController
    ) -> None:
        """Should only contain JSON types."""
        await walk_to_processing(controller, SESSION)

        payload = await tools.collect_structured_data(SESSION, {"shifts_noted": "lighter"})

        assert payload["unmet_constraints"][0]["constraint_type"] == "minimum_duration_seconds"
        json.dumps(payload)


class TestTherapySessionTransition:
    """Tests for therapy_session_transition."""

    @pytest.mark.asyncio
    async def test_next(self, tools: WorkflowTools, controller: SessionPhaseController) -> None:
        """Should commit the selected phase."""
        await controller.start_session(SESSION)
        await controller.submit(SESSION, {"consent_given": True})
        await tools.collect_structured_data(
            SESSION, {"selected_issue": "work stress", "issue_intensity": 7}
        )

        payload = await tools.therapy_session_transition(SESSION, "next")

        assert payload == {
            "success": True,
            "session_id": SESSION,
            "previous_phase": "stage_1_deciding_issue",
            "new_phase": "stage_2_information_gathering",
            "condition": None,
            "loop_reentry": False,
            "reset_fields": [],
        }

    @pytest.mark.asyncio
    async def test_loop_reentry(
        self, tools: WorkflowTools, controller: SessionPhaseController, clock: FakeClock
    ) -> None:
        """Should report the loop re-entry and the cleared fields."""
        await walk_to_processing(controller, SESSION)
        await process_and_check_in(controller, clock, SESSION, minutes=12)
        await tools.collect_structured_data(SESSION, {"suds_current": 4})

        payload = await tools.therapy_session_transition(SESSION)

        assert payload["new_phase"] == "stage_4_focused_mindfulness"
        assert payload["condition"] == "suds_above_zero_continue"
        assert payload["loop_reentry"] is True
        assert payload["reset_fields"] == ["processing_time_minutes", "suds_current"]

    @pytest.mark.asyncio
    async def test_blocked(self, tools: WorkflowTools, controller: SessionPhaseController) -> None:
        """Should explain what is missing when the session cannot move."""
        await controller.start_session(SESSION)
        await controller.submit(SESSION, {"consent_given": True})
        await tools.collect_structured_data(SESSION, {"selected_issue": "work stress"})

        payload = await tools.therapy_session_transition(SESSION)

        assert payload["success"] is False
        assert payload["blocked"] is True
        assert payload["reason"] == "field_validation"
        assert payload["missing_fields"] == ["issue_intensity"]
        assert "issue_intensity (missing)" in payload["guidance"]
        assert "collect_structured_data" in payload["instructions"]

    @pytest.mark.asyncio
    async def test_blocked_guidance_uses_transition_evaluation(
        self,
        tools: WorkflowTools,
        controller: SessionPhaseController,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Should build guidance without evaluating the session a second time."""
        await controller.start_session(SESSION)

        async def fail_evaluate(session_id: str) -> None:
            raise AssertionError("evaluated outside the transition")

        monkeypatch.setattr(controller, "evaluate", fail_evaluate)

        payload = await tools.therapy_session_transition(SESSION)

        assert payload["blocked"] is True
        assert payload["missing_fields"] == ["consent_given"]
        assert "consent_given (missing)" in payload["guidance"]

    @pytest.mark.asyncio
    async def test_illegal_target(
        self, tools: WorkflowTools, controller: SessionPhaseController
    ) -> None:
        """Should refuse to jump to an unconnected phase."""
        await controller.start_session(SESSION)
        await controller.collect(SESSION, {"consent_given": True})

        payload = await tools.therapy_session_transition(SESSION, "stage_8_expansion")

        assert payload["success"] is False
        assert payload["error_type"] == "IllegalTargetPhaseError"
        snapshot = await controller.get_session_snapshot(SESSION)
        assert snapshot.current_phase == "pre_session"

    @pytest.mark.asyncio
    async def test_unknown_session(self, tools: WorkflowTools) -> None:
        """Should report sessions that were never started."""
        payload = await tools.therapy_session_transition("ghost")

        assert payload["error_type"] == "SessionNotFoundError"


class TestDispatch:
    """Tests for name-based dispatch and guidance."""

    @pytest.mark.asyncio
    async def test_call(self, tools: WorkflowTools, controller: SessionPhaseController) -> None:
        """Should route tool calls by name."""
        await controller.start_session(SESSION)

        collected = await tools.call(
            "collect_structured_data",
            {"session_id": SESSION, "data": {"consent_given": True}},
        )
        moved = await tools.call("therapy_session_transition", {"session_id": SESSION})

        assert collected["ready_to_transition"] is True
        assert moved["new_phase"] == "stage_1_deciding_issue"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, tools: WorkflowTools) -> None:
        """Should fail hard for tools it does not provide."""
        with pytest.raises(ValueError, match="Unknown tool"):
            await tools.call("delete_session", {"session_id": SESSION})

    @pytest.mark.asyncio
    async def test_phase_guidance(
        self, tools: WorkflowTools, controller: SessionPhaseController
    ) -> None:
        """Should return structured and text guidance."""
        await controller.start_session(SESSION)

        payload = await tools.phase_guidance(SESSION)

        assert payload["success"] is True
        assert payload["guidance"]["phase_id"] == "pre_session"
        assert payload["guidance"]["fields"][0]["name"] == "consent_given"
        assert payload["text"].startswith("PHASE: Pre-Session (pre_session)")
