from __future__ import annotations

import re
from dataclasses import dataclass

"""Filterable purchase-order fields and the operator vocabulary.

The registry drives default-operator inference and the allowed-operator
warnings in the translator. Fields outside it are still passed through.
"""

__all__ = [
    "FilterField",
    "FILTER_REGISTRY",
    "OPERATORS",
    "OPERATOR_ALIASES",
    "RANGE_OPERATORS",
    "SET_OPERATORS",
    "NULL_OPERATORS",
    "DEFAULT_OPERATOR_BY_TYPE",
    "canonical_operator",
    "available_filters",
]

OPERATORS = frozenset({
    "equals", "not_equals",
    "contains", "starts_with", "ends_with",
    "gt", "gte", "lt", "lte",
    "between", "date_range",
    "in", "not_in",
    "is_null", "is_not_null",
})

OPERATOR_ALIASES: dict[str, str] = {
    "eq": "equals",
    "=": "equals",
    "==": "equals",
    "neq": "not_equals",
    "ne": "not_equals",
    "!=": "not_equals",
    "<>": "not_equals",
    "like": "contains",
    "starts": "starts_with",
    "ends": "ends_with",
    ">": "gt",
    ">=": "gte",
    "<": "lt",
    "<=": "lte",
    "range": "between",
    "null": "is_null",
    "not_null": "is_not_null",
    "notnull": "is_not_null",
    "nin": "not_in",
}

RANGE_OPERATORS = frozenset({"between"})
SET_OPERATORS = frozenset({"in", "not_in"})
NULL_OPERATORS = frozenset({"is_null", "is_not_null"})

DEFAULT_OPERATOR_BY_TYPE = {
    "number": "equals",
    "date": "date_range",
    "string": "contains",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


@dataclass(frozen=True)
class FilterField:
    value_type: str  # string | number | date
    operators: tuple[str, ...]
    description: str = ""

    def to_dict(self) -> dict[str, object]:
        return {"type": self.value_type, "operators": list(self.operators), "description": self.description}


_TEXT_MATCH = ("equals", "contains", "starts_with", "ends_with")
_STATUS = ("equals", "not_equals", "in", "not_in")
_NUMERIC = ("equals", "not_equals", "gt", "gte", "lt", "lte", "between")
_DATE = ("equals", "gt", "gte", "lt", "lte", "between", "date_range")
_NULLS = ("is_null", "is_not_null")

FILTER_REGISTRY: dict[str, FilterField] = {
    "poNo": FilterField("string", _TEXT_MATCH + _NULLS, "Purchase Order Number"),
    "gstNo": FilterField("string", ("equals", "contains") + _NULLS, "GST Number"),
    "brandName": FilterField("string", _TEXT_MATCH + ("in", "not_in"), "Brand Name"),
    "partyName": FilterField("string", _TEXT_MATCH + ("in", "not_in"), "Party/Customer Name"),
    "overallStatus": FilterField("string", _STATUS, "Overall Status"),
    "dispatchStatus": FilterField("string", _STATUS, "Dispatch Status"),
    "productionStatus": FilterField("string", _STATUS + _NULLS, "Production Status"),
    "poDate": FilterField("date", _DATE, "PO Date"),
    "dispatchDate": FilterField("date", _DATE + _NULLS, "Dispatch Date"),
    "amount": FilterField("number", _NUMERIC, "Amount"),
    "poQty": FilterField("number", _NUMERIC, "PO Quantity"),
    "batchNo": FilterField("string", _TEXT_MATCH, "Batch Number"),
    "invoiceNo": FilterField("string", ("equals", "contains") + _NULLS, "Invoice Number"),
    "mdApproval": FilterField("string", _STATUS, "MD Approval Status"),
    "accountsApproval": FilterField("string", _STATUS, "Accounts Approval Status"),
    "designerApproval": FilterField("string", _STATUS, "Designer Approval Status"),
    "ppicApproval": FilterField("string", _STATUS, "PPIC Approval Status"),
}


def canonical_operator(raw: object) -> str | None:
    """Canonical operator name, or None when the operator is unknown.

    Accepts snake_case, camelCase ("startsWith") and symbolic aliases (">=").
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    snake = _CAMEL_BOUNDARY.sub(r"_\1", text).lower()
    if snake in OPERATORS:
        return snake
    return OPERATOR_ALIASES.get(snake)


def available_filters() -> dict[str, dict[str, object]]:
    return {name: spec.to_dict() for name, spec in FILTER_REGISTRY.items()}
