"""Field store and requirement validator bound to a session state store."""

from typing import TYPE_CHECKING, Any

from attune.observability.logging import get_logger
from attune.observability.metrics import FIELD_REJECTIONS
from attune.workflow.fields.validator import (
    FieldValueValidator,
    check_requirements,
    infer_value_type,
)
from attune.workflow.models import (
    Clock,
    FieldIssue,
    FieldSubmission,
    RequirementReport,
    SessionFieldValue,
    utc_now,
)
from attune.workflow.stores import SessionStateStore

if TYPE_CHECKING:
    from attune.workflow.graph.graph import PhaseGraph

logger = get_logger(__name__)


class FieldStore:
    """Record collected field values for a session.

    Values for fields the phase declares are validated against the
    declared schema before storing; a rejected value leaves any
    previously stored value untouched. Values for undeclared fields are
    stored with an inferred type.
    """

    def __init__(
        self,
        graph: "PhaseGraph",
        state_store: SessionStateStore,
        validator: FieldValueValidator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._graph = graph
        self._state_store = state_store
        self._validator = validator or FieldValueValidator()
        self._clock = clock

    async def submit_field(
        self,
        session_id: str,
        phase_id: str,
        name: str,
        raw_value: Any,
    ) -> FieldSubmission:
        """Validate and upsert one field value.

        Does not evaluate transitions.

        Returns:
            FieldSubmission; `accepted` is False when the value was rejected
        """
        requirement = self._graph.get_requirement(phase_id, name)

        if requirement is None:
            if raw_value is None:
                return FieldSubmission(
                    field_name=name,
                    phase_id=phase_id,
                    declared=False,
                    errors=[
                        FieldIssue(
                            field_name=name, error_type="null_value", message="Value is null"
                        )
                    ],
                )
            value, value_type = infer_value_type(raw_value)
            submission = FieldSubmission(
                field_name=name,
                phase_id=phase_id,
                value=value,
                value_type=value_type,
                declared=False,
            )
        else:
            value, errors = self._validator.validate(name, raw_value, requirement.value_schema)
            submission = FieldSubmission(
                field_name=name,
                phase_id=phase_id,
                value=value,
                value_type=requirement.value_schema.type,
                errors=errors,
            )
            if errors:
                for error in errors:
                    FIELD_REJECTIONS.labels(
                        phase=phase_id, field=name, error_type=error.error_type
                    ).inc()
                logger.info(
                    "field_rejected",
                    session_id=session_id,
                    phase_id=phase_id,
                    field_name=name,
                    error_types=[e.error_type for e in errors],
                )
                return submission

        now = self._clock()
        existing = await self._state_store.get_field_value(session_id, name)
        await self._state_store.save_field_value(
            SessionFieldValue(
                session_id=session_id,
                phase_id=phase_id,
                field_name=name,
                value=submission.value,
                value_type=submission.value_type,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
        )
        logger.debug(
            "field_stored",
            session_id=session_id,
            phase_id=phase_id,
            field_name=name,
            declared=submission.declared,
        )
        return submission

    async def get_values(self, session_id: str) -> dict[str, Any]:
        """Stored values by field name."""
        stored = await self._state_store.get_field_values(session_id)
        return {name: record.value for name, record in stored.items()}

    async def clear_fields(self, session_id: str, field_names: list[str]) -> list[str]:
        """Delete stored values, returning the names that were present."""
        return await self._state_store.delete_field_values(session_id, field_names)


class RequirementValidator:
    """Report which of a phase's requirements the session satisfies."""

    def __init__(
        self,
        graph: "PhaseGraph",
        state_store: SessionStateStore,
        validator: FieldValueValidator | None = None,
    ) -> None:
        self._graph = graph
        self._state_store = state_store
        self._validator = validator or FieldValueValidator()

    def check(self, phase_id: str, values: dict[str, Any]) -> RequirementReport:
        """Check already loaded values against a phase's requirements."""
        return check_requirements(
            phase_id, self._graph.get_requirements(phase_id), values, self._validator
        )

    def normalize(self, phase_id: str, values: dict[str, Any]) -> dict[str, Any]:
        """Coerce stored values to the schema that declares each field.

        The phase's own declaration wins, then the first phase declaring the
        field. A value is only replaced when it validates.
        """
        normalized = dict(values)
        for name, value in values.items():
            if value is None:
                continue
            requirement = self._graph.get_requirement(
                phase_id, name
            ) or self._graph.find_requirement(name)
            if requirement is None:
                continue
            coerced, errors = self._validator.validate(name, value, requirement.value_schema)
            if not errors:
                normalized[name] = coerced
        return normalized

    async def evaluate(self, session_id: str, phase_id: str) -> RequirementReport:
        """Load the session's values and check them against a phase."""
        stored = await self._state_store.get_field_values(session_id)
        return self.check(phase_id, {name: record.value for name, record in stored.items()})
