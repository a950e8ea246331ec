"""Record validation against a schema."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .exceptions import ValidationError
from .types import FieldKind, Schema, kind_of


def check_record(record: Mapping[str, Any], schema: Schema) -> ValidationError | None:
    """Return the first schema violation in `record`, or None when it conforms.

    Fields are checked in declared order, so a given record always reports the
    same error. Keys the schema does not declare are ignored.
    """
    for field in schema.fields:
        if field.name not in record:
            return ValidationError(field.name, f"missing field {field.name}")
        actual = kind_of(record[field.name])
        if actual is not field.kind:
            actual_name = actual.value if isinstance(actual, FieldKind) else actual
            return ValidationError(
                field.name,
                f"field {field.name}: expected {field.kind.value}, got {actual_name}",
            )
    return None


def validate_record(record: Mapping[str, Any], schema: Schema) -> None:
    """Raise `ValidationError` when `record` does not satisfy `schema`."""
    if not isinstance(record, Mapping):
        raise ValidationError(
            "", f"expected object record, got {_describe(kind_of(record))}"
        )
    error = check_record(record, schema)
    if error is not None:
        raise error


def _describe(kind: FieldKind | str) -> str:
    return kind.value if isinstance(kind, FieldKind) else kind
