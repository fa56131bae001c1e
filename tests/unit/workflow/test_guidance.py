"""Unit tests for phase guidance."""

import pytest

from attune.workflow.controller import SessionPhaseController
from attune.workflow.guidance import ask_hint, build_phase_guidance
from attune.workflow.models import BlockReason, ValueSchema, ValueType
from tests.factories import walk_to_processing

SESSION = "session-1"


class TestAskHint:
    """Tests for per-schema hints."""

    @pytest.mark.parametrize(
        "schema,expected",
        [
            (
                ValueSchema(type=ValueType.INTEGER, minimum=0, maximum=10),
                "Ask for a whole number from 0 to 10",
            ),
            (
                ValueSchema(type=ValueType.NUMBER, minimum=-1, maximum=1),
                "Ask for a number from -1 to 1",
            ),
            (ValueSchema(type=ValueType.NUMBER, minimum=0.5), "Ask for a number"),
            (
                ValueSchema(type=ValueType.ENUM, enum=("breathing", "grounding")),
                "Establish which applies: breathing, grounding",
            ),
            (
                ValueSchema(type=ValueType.BOOLEAN),
                "Ask for an explicit yes or no and wait for the answer",
            ),
            (
                ValueSchema(type=ValueType.STRING),
                "Wait for the client to describe this in their own words",
            ),
        ],
    )
    def test_hint(self, schema: ValueSchema, expected: str) -> None:
        """Should phrase the question to fit the value type."""
        assert ask_hint(schema) == expected


class TestPhaseGuidance:
    """Tests for guidance built from a decision."""

    @pytest.mark.asyncio
    async def test_missing_fields(self, controller: SessionPhaseController) -> None:
        """Should list missing required fields in declaration order."""
        await controller.start_session(SESSION)
        await controller.submit(SESSION, {"consent_given": True})
        await controller.collect(SESSION, {"selected_issue": "work stress"})

        guidance = build_phase_guidance(controller.graph, await controller.evaluate(SESSION))

        assert guidance.phase_id == "stage_1_deciding_issue"
        assert not guidance.ready_to_transition
        assert guidance.blocked == BlockReason.FIELD_VALIDATION
        assert [hint.name for hint in guidance.fields] == ["issue_intensity"]
        assert guidance.current_turns == 1
        assert guidance.turns_needed == 1

        text = guidance.render()
        assert text.splitlines()[:2] == [
            "PHASE: Deciding an Issue (stage_1_deciding_issue)",
            "NOT READY:",
        ]
        assert "- issue_intensity (missing): Ask for a whole number from 0 to 10" in text
        assert "Turns: 1/2 (1 more recommended)" in text

    @pytest.mark.asyncio
    async def test_ready(self, controller: SessionPhaseController) -> None:
        """Should name the next phase once the phase is complete."""
        await controller.start_session(SESSION)
        await controller.collect(SESSION, {"consent_given": True})

        guidance = build_phase_guidance(controller.graph, await controller.evaluate(SESSION))

        assert guidance.ready_to_transition
        assert guidance.fields == []
        assert "READY: all requirements met, next phase is stage_1_deciding_issue." in (
            guidance.render()
        )

    @pytest.mark.asyncio
    async def test_timed_phase(self, controller: SessionPhaseController) -> None:
        """Should include constraints and waiting prompts for timed phases."""
        await walk_to_processing(controller, SESSION)

        guidance = build_phase_guidance(controller.graph, await controller.evaluate(SESSION))
        text = guidance.render()

        assert guidance.blocking_constraints == [
            "Let processing settle for at least a minute before checking in (0s/60s in phase)"
        ]
        assert guidance.constraint_hints == ["Recommended processing window (0s/180s in phase)"]
        assert "Timed waiting: 180s" in text
        assert text.count("Hint: ") == 1
        assert "After waiting: What did you notice during that time?" in text

    @pytest.mark.asyncio
    async def test_rejected_value_stays_missing(self, controller: SessionPhaseController) -> None:
        """Should keep asking for a field whose value was rejected."""
        await controller.start_session(SESSION)
        await controller.collect(SESSION, {"consent_given": "maybe"})

        guidance = build_phase_guidance(controller.graph, await controller.evaluate(SESSION))

        assert [hint.name for hint in guidance.fields] == ["consent_given"]
        assert not guidance.fields[0].invalid
