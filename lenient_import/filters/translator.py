from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..models.config_models import DEFAULT_SORT_BY
from ..models.filter_models import CanonicalFilter, FilterCondition, FilterPage, FilterTranslation
from ..normalize.values import is_blank, parse_date, parse_number
from .registry import (
    DEFAULT_OPERATOR_BY_TYPE,
    FILTER_REGISTRY,
    NULL_OPERATORS,
    RANGE_OPERATORS,
    SET_OPERATORS,
    canonical_operator,
)

"""Dynamic filter translator.

Request (either filter shape) -> CanonicalFilter + warnings. Never raises:
conditions that cannot be satisfied are dropped and reported, unknown fields
are passed through, pagination is clamped.

Accepted request keys: filters, sortBy, sortOrder, page, limit,
combineOperator (alias: operator).
"""

__all__ = [
    "MAX_PAGE_SIZE",
    "DEFAULT_PAGE_SIZE",
    "normalize_filters",
    "translate_filter_request",
    "build_filter_from_query",
    "filter_dynamic",
]

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000
DEFAULT_PAGE_SIZE = 50

_PAGING_KEYS = frozenset({"page", "limit", "sortBy", "sortOrder", "operator", "combineOperator"})


def _normalize_shape(filters: Any, warnings: list[str], hard_errors: list[str]) -> dict[str, dict[str, Any]]:
    if filters is None:
        return {}
    normalized: dict[str, dict[str, Any]] = {}
    if isinstance(filters, Mapping):
        for name, condition in filters.items():
            if isinstance(condition, Mapping):
                normalized[str(name)] = dict(condition)
            else:
                # bare value shorthand: {"poNo": "PO1"}
                normalized[str(name)] = {"value": condition}
        return normalized
    if isinstance(filters, (list, tuple)):
        for position, item in enumerate(filters):
            if not isinstance(item, Mapping) or is_blank(item.get("field")):
                warnings.append(f"Filter #{position + 1} has no 'field'; ignored")
                continue
            condition = {k: v for k, v in item.items() if k != "field"}
            normalized[str(item["field"]).strip()] = condition
        return normalized
    hard_errors.append(f"'filters' must be an object or a list, got {type(filters).__name__}")
    return {}


def normalize_filters(filters: Any) -> dict[str, dict[str, Any]]:
    """List form [{field, ...}] -> mapping form {field: {...}}; mappings are copied as-is."""
    return _normalize_shape(filters, [], [])


def _coerce(value: Any, value_type: str) -> Any:
    """Typed filter value, or None when it cannot be coerced."""
    if value is None or is_blank(value):
        return None
    if value_type == "number":
        number = parse_number(value, "float")
        if number is None:
            return None
        return int(number) if float(number).is_integer() else number
    if value_type == "date":
        parsed = parse_date(value)
        return parsed.date().isoformat() if parsed is not None else None
    return value


def _int_param(value: Any, default: int) -> int:
    number = parse_number(value, "int")
    return default if number is None else int(number)


def _translate_condition(
    name: str,
    raw: dict[str, Any],
    warnings: list[str],
) -> FilterCondition | None:
    registered = FILTER_REGISTRY.get(name)
    value_type = registered.value_type if registered else "string"
    if registered is None:
        warnings.append(f"Unknown filter field '{name}'; passed through")

    raw_operator = raw.get("operator")
    if is_blank(raw_operator):
        operator = DEFAULT_OPERATOR_BY_TYPE.get(value_type, "contains")
    else:
        operator = canonical_operator(raw_operator)
        if operator is None:
            warnings.append(f"Unknown operator '{raw_operator}' for field '{name}'; condition dropped")
            return None
    if registered is not None and operator not in registered.operators:
        warnings.append(
            f"Operator '{operator}' is not listed for field '{name}' "
            f"(allowed: {', '.join(registered.operators)})"
        )

    if operator in NULL_OPERATORS:
        return FilterCondition(operator)

    if operator in SET_OPERATORS:
        values = raw.get("values")
        if not isinstance(values, (list, tuple)) or not values:
            warnings.append(f"Operator '{operator}' requires a non-empty 'values' list for field '{name}'; condition dropped")
            return None
        coerced = [c for c in (_coerce(v, value_type) for v in values) if c is not None]
        if len(coerced) < len(values):
            warnings.append(f"Field '{name}': {len(values) - len(coerced)} value(s) could not be read as {value_type}")
        if not coerced:
            warnings.append(f"Field '{name}': no usable values for '{operator}'; condition dropped")
            return None
        return FilterCondition(operator, values=tuple(coerced))

    if operator in RANGE_OPERATORS:
        low = _coerce(raw.get("min"), value_type)
        high = _coerce(raw.get("max"), value_type)
        if low is not None and high is not None:
            return FilterCondition(operator, min=low, max=high)
        single = low if low is not None else high
        if single is None:
            single = _coerce(raw.get("value"), value_type)
        if single is None:
            warnings.append(f"Operator '{operator}' requires 'min' and 'max' for field '{name}'; condition dropped")
            return None
        warnings.append(f"Operator '{operator}' on field '{name}' has a single bound; treated as equals")
        return FilterCondition("equals", value=single)

    if operator == "date_range":
        start = _coerce(raw.get("from"), "date")
        end = _coerce(raw.get("to"), "date")
        if start is None and end is None:
            warnings.append(f"Operator 'date_range' requires 'from' or 'to' for field '{name}'; condition dropped")
            return None
        return FilterCondition(operator, from_=start, to=end)

    raw_value = raw.get("value")
    if raw_value is None or is_blank(raw_value):
        warnings.append(f"Operator '{operator}' requires 'value' for field '{name}'; condition dropped")
        return None
    value = _coerce(raw_value, value_type)
    if value is None:
        warnings.append(f"Field '{name}': {raw_value!r} is not a valid {value_type}; condition dropped")
        return None
    return FilterCondition(operator, value=value)


def translate_filter_request(
    request: Mapping[str, Any] | None,
    *,
    default_sort_by: str = DEFAULT_SORT_BY,
) -> FilterTranslation:
    warnings: list[str] = []
    hard_errors: list[str] = []
    dropped: list[str] = []

    if request is None:
        request = {}
    elif not isinstance(request, Mapping):
        hard_errors.append(f"filter request must be an object, got {type(request).__name__}")
        request = {}

    conditions: dict[str, FilterCondition] = {}
    for name, raw in _normalize_shape(request.get("filters"), warnings, hard_errors).items():
        condition = _translate_condition(name, raw, warnings)
        if condition is None:
            dropped.append(name)
        else:
            conditions[name] = condition

    requested_page = _int_param(request.get("page"), 1)
    requested_limit = _int_param(request.get("limit"), DEFAULT_PAGE_SIZE)
    page = max(1, requested_page)
    limit = min(max(1, requested_limit), MAX_PAGE_SIZE)
    if limit != requested_limit:
        warnings.append(f"limit {requested_limit} clamped to {limit}")
    if page != requested_page:
        warnings.append(f"page {requested_page} clamped to {page}")

    sort_order = "ASC" if str(request.get("sortOrder") or "").strip().upper() == "ASC" else "DESC"
    combine = request.get("combineOperator") or request.get("operator")
    combine_operator = "OR" if str(combine or "").strip().upper() == "OR" else "AND"
    sort_by = str(request.get("sortBy") or "").strip() or default_sort_by

    return FilterTranslation(
        canonical=CanonicalFilter(
            filters=conditions,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
            combine_operator=combine_operator,
        ),
        warnings=warnings,
        dropped_conditions=dropped,
        hard_errors=hard_errors,
    )


def _strip_suffix(key: str, *suffixes: str) -> str:
    for suffix in suffixes:
        if key.endswith(suffix):
            return key[: -len(suffix)]
    return key


def build_filter_from_query(query: Mapping[str, Any]) -> dict[str, Any]:
    """Flat query parameters -> filter request.

    x_from / x_to   -> date_range
    x_min / x_max   -> between
    x=v&x_op=op     -> {operator: op, value: v}  (default contains; in/not_in split v on ",")
    """
    filters: dict[str, dict[str, Any]] = {}
    for key, value in query.items():
        if key in _PAGING_KEYS or key.endswith("_op"):
            continue
        if key.endswith(("_from", "_to")):
            name = _strip_suffix(key, "_from", "_to")
            condition = filters.setdefault(name, {"operator": "date_range"})
            condition["from" if key.endswith("_from") else "to"] = str(value)
        elif key.endswith(("_min", "_max")):
            name = _strip_suffix(key, "_min", "_max")
            condition = filters.setdefault(name, {"operator": "between"})
            condition["min" if key.endswith("_min") else "max"] = str(value)
        else:
            operator = query.get(f"{key}_op") or "contains"
            if canonical_operator(operator) in SET_OPERATORS:
                items = value if isinstance(value, (list, tuple)) else str(value).split(",")
                filters[key] = {"operator": operator, "values": [str(v).strip() for v in items if str(v).strip()]}
            else:
                filters[key] = {"operator": operator, "value": str(value)}

    return {
        "filters": filters,
        "sortBy": query.get("sortBy") or DEFAULT_SORT_BY,
        "sortOrder": "ASC" if str(query.get("sortOrder") or "").upper() == "ASC" else "DESC",
        "page": _int_param(query.get("page"), 1) or 1,
        "limit": _int_param(query.get("limit"), DEFAULT_PAGE_SIZE) or DEFAULT_PAGE_SIZE,
        "operator": "OR" if str(query.get("operator") or "").upper() == "OR" else "AND",
    }


def filter_dynamic(
    request: Mapping[str, Any] | None,
    engine: Any,
    *,
    default_sort_by: str = DEFAULT_SORT_BY,
) -> FilterPage:
    """Translate the request and run it on the query engine (engine.execute(canonical))."""
    translation = translate_filter_request(request, default_sort_by=default_sort_by)
    for message in translation.hard_errors:
        logger.warning("filter request: %s", message)
    for message in translation.warnings:
        logger.warning("filter: %s", message)
    canonical = translation.canonical
    logger.debug(
        "filter fields=%s sort=%s %s page=%d limit=%d combine=%s",
        sorted(canonical.filters), canonical.sort_by, canonical.sort_order,
        canonical.page, canonical.limit, canonical.combine_operator,
    )
    return engine.execute(canonical)
