"""Field collection and requirement validation."""

from attune.workflow.fields.store import FieldStore, RequirementValidator
from attune.workflow.fields.validator import (
    FieldValueValidator,
    check_requirements,
    infer_value_type,
)

__all__ = [
    "FieldStore",
    "FieldValueValidator",
    "RequirementValidator",
    "check_requirements",
    "infer_value_type",
]
