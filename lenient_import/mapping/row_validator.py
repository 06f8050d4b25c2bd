from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..models.import_row import FieldError, ImportRow, Severity
from ..normalize.values import (
    is_blank,
    parse_boolean,
    parse_date,
    parse_number,
    to_safe_string,
)
from .schema import PO_FIELD_SCHEMA, FieldSpec

"""Schema-aware row validator.

Maps one raw row through a field mapping into canonical, typed data.
Lenient by contract: nothing here rejects a row or drops a value.

- absent header / blank cell -> field skipped (no null placeholder)
- field unknown to the schema -> raw value stored verbatim
- string field -> trimmed, truncated to max_length (truncation is a warning)
- date/int/float/boolean -> parsed; on failure the raw value is stored as a
  string and a warning is recorded, so retyped fields are visible and counted
"""

__all__ = [
    "map_and_validate",
    "validate_row",
]

_PARSERS: dict[str, Callable[[Any], Any]] = {
    "date": parse_date,
    "int": lambda v: parse_number(v, "int"),
    "float": lambda v: parse_number(v, "float"),
    "boolean": parse_boolean,
}


def _coerce(
    field_name: str,
    raw: Any,
    spec: FieldSpec,
    errors: list[FieldError],
) -> Any:
    if spec.type == "string":
        value: Any = to_safe_string(raw)
    else:
        parser = _PARSERS.get(spec.type)
        value = parser(raw) if parser is not None else raw
        if value is None:
            value = to_safe_string(raw)
            errors.append(FieldError(
                field_name,
                f"could not parse {raw!r} as {spec.type}; stored as text",
                Severity.WARNING,
            ))

    if spec.max_length and isinstance(value, str) and len(value) > spec.max_length:
        errors.append(FieldError(
            field_name,
            f"value truncated from {len(value)} to {spec.max_length} characters",
            Severity.WARNING,
        ))
        value = value[:spec.max_length]
    return value


def map_and_validate(
    raw_row: dict[str, Any],
    mapping: dict[str, str],
    schema: dict[str, FieldSpec] | None = None,
) -> tuple[dict[str, Any], list[FieldError]]:
    """Return (canonical data, field warnings) for one raw row."""
    fields = schema if schema is not None else PO_FIELD_SCHEMA
    data: dict[str, Any] = {}
    errors: list[FieldError] = []

    for canonical, header in mapping.items():
        if not header or header not in raw_row:
            continue
        raw = raw_row[header]
        if is_blank(raw):
            continue

        spec = fields.get(canonical)
        if spec is None:
            data[canonical] = raw
            continue

        value = _coerce(canonical, raw, spec, errors)
        if value is not None and value != "":
            data[canonical] = value

    return data, errors


def validate_row(
    raw_row: dict[str, Any],
    mapping: dict[str, str],
    row_index: int,
    schema: dict[str, FieldSpec] | None = None,
) -> ImportRow:
    data, warnings = map_and_validate(raw_row, mapping, schema)
    row = ImportRow(row_index=row_index, data=data)
    for warning in warnings:
        row.add_warning(warning.field, warning.message)
    return row
