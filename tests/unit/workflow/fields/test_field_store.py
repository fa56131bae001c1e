"""Unit tests for FieldStore and RequirementValidator."""

import pytest

from attune.workflow.fields import FieldStore, RequirementValidator
from attune.workflow.graph import PhaseGraph
from attune.workflow.models import ValueType
from attune.workflow.stores import InMemorySessionStateStore
from tests.factories import FakeClock


@pytest.fixture
def field_store(
    eight_stage_graph: PhaseGraph,
    state_store: InMemorySessionStateStore,
    clock: FakeClock,
) -> FieldStore:
    return FieldStore(eight_stage_graph, state_store, clock=clock)


class TestSubmitField:
    """Tests for FieldStore.submit_field."""

    @pytest.mark.asyncio
    async def test_stores_declared_value(
        self, field_store: FieldStore, state_store: InMemorySessionStateStore
    ) -> None:
        """Should store the coerced value with the declared type."""
        submission = await field_store.submit_field(
            "s1", "stage_1_deciding_issue", "issue_intensity", "7"
        )

        assert submission.accepted
        assert submission.declared
        stored = await state_store.get_field_value("s1", "issue_intensity")
        assert stored is not None
        assert stored.value == 7
        assert stored.value_type == ValueType.INTEGER
        assert stored.phase_id == "stage_1_deciding_issue"

    @pytest.mark.asyncio
    async def test_rejected_value_keeps_previous(
        self, field_store: FieldStore
    ) -> None:
        """Should leave the stored value untouched when a new one is rejected."""
        await field_store.submit_field("s1", "stage_1_deciding_issue", "issue_intensity", 6)

        submission = await field_store.submit_field(
            "s1", "stage_1_deciding_issue", "issue_intensity", 15
        )

        assert not submission.accepted
        assert submission.errors[0].error_type == "range_error"
        assert (await field_store.get_values("s1")) == {"issue_intensity": 6}

    @pytest.mark.asyncio
    async def test_overwrite_keeps_created_at(
        self,
        field_store: FieldStore,
        state_store: InMemorySessionStateStore,
        clock: FakeClock,
    ) -> None:
        """Should overwrite the value and refresh only updated_at."""
        await field_store.submit_field("s1", "pre_session", "consent_given", False)
        first = await state_store.get_field_value("s1", "consent_given")
        clock.advance(30)

        await field_store.submit_field("s1", "pre_session", "consent_given", "yes")

        second = await state_store.get_field_value("s1", "consent_given")
        assert first is not None and second is not None
        assert second.value is True
        assert second.created_at == first.created_at
        assert (second.updated_at - first.updated_at).total_seconds() == 30

    @pytest.mark.asyncio
    async def test_undeclared_field_is_stored(self, field_store: FieldStore) -> None:
        """Should store fields the phase does not declare with an inferred type."""
        submission = await field_store.submit_field(
            "s1", "pre_session", "preferred_name_pronunciation", "ah-NEE"
        )

        assert submission.accepted
        assert not submission.declared
        assert submission.value_type == ValueType.STRING
        assert (await field_store.get_values("s1")) == {"preferred_name_pronunciation": "ah-NEE"}

    @pytest.mark.asyncio
    async def test_undeclared_null_is_rejected(self, field_store: FieldStore) -> None:
        """Should not store None for undeclared fields."""
        submission = await field_store.submit_field("s1", "pre_session", "mood", None)

        assert not submission.accepted
        assert submission.errors[0].error_type == "null_value"
        assert await field_store.get_values("s1") == {}

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, field_store: FieldStore) -> None:
        """Should never expose one session's values to another."""
        await field_store.submit_field("s1", "pre_session", "consent_given", True)

        assert await field_store.get_values("s2") == {}

    @pytest.mark.asyncio
    async def test_clear_fields(self, field_store: FieldStore) -> None:
        """Should delete only present fields and report them."""
        await field_store.submit_field("s1", "stage_5_checking_in", "suds_current", 3)

        cleared = await field_store.clear_fields("s1", ["next_action", "suds_current"])

        assert cleared == ["suds_current"]
        assert await field_store.get_values("s1") == {}


class TestRequirementValidator:
    """Tests for RequirementValidator."""

    @pytest.mark.asyncio
    async def test_evaluate_reads_stored_values(
        self,
        eight_stage_graph: PhaseGraph,
        state_store: InMemorySessionStateStore,
        field_store: FieldStore,
    ) -> None:
        """Should report satisfaction from the session's stored values."""
        validator = RequirementValidator(eight_stage_graph, state_store)
        await field_store.submit_field(
            "s1", "stage_1_deciding_issue", "selected_issue", "public speaking"
        )

        report = await validator.evaluate("s1", "stage_1_deciding_issue")

        assert report.satisfied == ["selected_issue"]
        assert report.missing == ["issue_intensity"]
        assert not report.complete

    def test_check_is_pure(self, eight_stage_graph: PhaseGraph, state_store) -> None:
        """Should check given values without touching the store."""
        validator = RequirementValidator(eight_stage_graph, state_store)

        report = validator.check("pre_session", {"consent_given": True})

        assert report.complete
        assert report.satisfied == ["consent_given"]
