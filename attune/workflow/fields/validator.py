"""Field value validation and requirement checking.

Values are coerced to the declared schema type before range and enum
checks, so "7" for an integer field is stored as 7. Requirement checking
is a pure function of the phase requirements and the stored values.
"""

import json
import math
from collections.abc import Mapping
from typing import Any

from attune.observability.logging import get_logger
from attune.workflow.models import (
    FieldIssue,
    FieldRequirement,
    RequirementReport,
    ValueSchema,
    ValueType,
)

logger = get_logger(__name__)

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "0"})


class FieldValueValidator:
    """Coerce and validate raw field values against a ValueSchema."""

    # Type coercers mapped by value type
    TYPE_COERCERS = {
        ValueType.STRING: "_coerce_string",
        ValueType.INTEGER: "_coerce_integer",
        ValueType.NUMBER: "_coerce_number",
        ValueType.BOOLEAN: "_coerce_boolean",
        ValueType.ENUM: "_coerce_enum",
    }

    def validate(
        self,
        field_name: str,
        raw_value: Any,
        schema: ValueSchema,
    ) -> tuple[Any, list[FieldIssue]]:
        """Coerce a raw value and check it against the schema.

        Args:
            field_name: Field the value belongs to
            raw_value: Value as submitted
            schema: Declared value schema

        Returns:
            Tuple of (normalized value, errors). The value is None when
            there are errors.
        """
        if raw_value is None:
            return None, [
                FieldIssue(field_name=field_name, error_type="null_value", message="Value is null")
            ]

        coercer = getattr(self, self.TYPE_COERCERS[schema.type])
        value, errors = coercer(field_name, raw_value, schema)
        if errors:
            return None, errors

        if schema.type in (ValueType.INTEGER, ValueType.NUMBER):
            errors = self._check_range(field_name, value, schema)
        if schema.enum and schema.type != ValueType.ENUM and value not in schema.enum:
            errors.append(self._enum_issue(field_name, value, schema))
        if errors:
            return None, errors
        return value, []

    def _coerce_string(
        self, field_name: str, raw: Any, schema: ValueSchema
    ) -> tuple[Any, list[FieldIssue]]:
        """Coerce to a non-empty string."""
        if isinstance(raw, bool) or not isinstance(raw, str | int | float):
            return None, [self._type_issue(field_name, "string", raw)]
        value = str(raw).strip()
        if not value:
            return None, [
                FieldIssue(
                    field_name=field_name, error_type="empty_value", message="Value is empty"
                )
            ]
        return value, []

    def _coerce_integer(
        self, field_name: str, raw: Any, schema: ValueSchema
    ) -> tuple[Any, list[FieldIssue]]:
        """Coerce to an int; integral floats and numeric strings are accepted."""
        number = self._to_number(raw)
        if number is None or not float(number).is_integer():
            return None, [self._type_issue(field_name, "integer", raw)]
        return int(number), []

    def _coerce_number(
        self, field_name: str, raw: Any, schema: ValueSchema
    ) -> tuple[Any, list[FieldIssue]]:
        """Coerce to a finite float."""
        number = self._to_number(raw)
        if number is None:
            return None, [self._type_issue(field_name, "number", raw)]
        return float(number), []

    def _coerce_boolean(
        self, field_name: str, raw: Any, schema: ValueSchema
    ) -> tuple[Any, list[FieldIssue]]:
        """Coerce to a bool from bools, 0/1 and yes/no style strings."""
        if isinstance(raw, bool):
            return raw, []
        if isinstance(raw, int) and raw in (0, 1):
            return bool(raw), []
        if isinstance(raw, str):
            text = raw.strip().lower()
            if text in _TRUE_STRINGS:
                return True, []
            if text in _FALSE_STRINGS:
                return False, []
        return None, [self._type_issue(field_name, "boolean", raw)]

    def _coerce_enum(
        self, field_name: str, raw: Any, schema: ValueSchema
    ) -> tuple[Any, list[FieldIssue]]:
        """Match against the enum set, comparing strings after stripping."""
        allowed = schema.enum or ()
        if raw in allowed and not isinstance(raw, bool):
            return raw, []
        if isinstance(raw, str):
            text = raw.strip()
            for option in allowed:
                if str(option) == text:
                    return option, []
        return None, [self._enum_issue(field_name, raw, schema)]

    def _check_range(
        self, field_name: str, value: float, schema: ValueSchema
    ) -> list[FieldIssue]:
        """Check inclusive minimum and maximum bounds."""
        if schema.minimum is not None and value < schema.minimum:
            return [
                FieldIssue(
                    field_name=field_name,
                    error_type="range_error",
                    message=f"Value {value} is below minimum {_format_bound(schema.minimum)}",
                )
            ]
        if schema.maximum is not None and value > schema.maximum:
            return [
                FieldIssue(
                    field_name=field_name,
                    error_type="range_error",
                    message=f"Value {value} is above maximum {_format_bound(schema.maximum)}",
                )
            ]
        return []

    @staticmethod
    def _to_number(raw: Any) -> int | float | None:
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float):
            return raw if math.isfinite(raw) else None
        if isinstance(raw, str):
            text = raw.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                number = float(text)
            except ValueError:
                return None
            return number if math.isfinite(number) else None
        return None

    @staticmethod
    def _type_issue(field_name: str, expected: str, raw: Any) -> FieldIssue:
        return FieldIssue(
            field_name=field_name,
            error_type="type_error",
            message=f"Expected {expected}, got {type(raw).__name__}",
        )

    @staticmethod
    def _enum_issue(field_name: str, raw: Any, schema: ValueSchema) -> FieldIssue:
        options = ", ".join(str(option) for option in schema.enum or ())
        return FieldIssue(
            field_name=field_name,
            error_type="enum_error",
            message=f"Value {raw!r} is not one of: {options}",
        )


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def infer_value_type(value: Any) -> tuple[Any, ValueType]:
    """Infer the type of a value for a field no phase declares.

    Nested values are stored as their JSON text.
    """
    if isinstance(value, bool):
        return value, ValueType.BOOLEAN
    if isinstance(value, int):
        return value, ValueType.INTEGER
    if isinstance(value, float):
        return value, ValueType.NUMBER
    if isinstance(value, str):
        return value, ValueType.STRING
    return json.dumps(value, default=str, sort_keys=True), ValueType.STRING


def check_requirements(
    phase_id: str,
    requirements: list[FieldRequirement],
    values: Mapping[str, Any],
    validator: FieldValueValidator | None = None,
) -> RequirementReport:
    """Check stored values against a phase's requirements.

    Stored values are re-validated against this phase's schema, since a
    field name may have been collected in another phase under a
    different schema.

    Args:
        phase_id: Phase being checked
        requirements: Requirements in declaration order
        values: Stored values by field name
        validator: Value validator (a default one is used if omitted)

    Returns:
        RequirementReport with fields listed in declaration order
    """
    validator = validator or FieldValueValidator()
    report = RequirementReport(phase_id=phase_id)

    for requirement in requirements:
        name = requirement.name
        if values.get(name) is None:
            if requirement.required:
                report.missing.append(name)
            else:
                report.optional_missing.append(name)
            continue

        _, errors = validator.validate(name, values[name], requirement.value_schema)
        if errors:
            report.issues.extend(errors)
            if requirement.required:
                report.invalid.append(name)
            continue

        report.satisfied.append(name)

    return report
