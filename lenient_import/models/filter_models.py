from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

"""Dynamic filter models.

FilterCondition carries only the sub-fields meaningful for its operator
family. CanonicalFilter is the single normalized form handed to the query
engine, whichever of the two request shapes was received.
"""

__all__ = [
    "FilterCondition",
    "CanonicalFilter",
    "FilterTranslation",
    "FilterPage",
]


@dataclass(frozen=True)
class FilterCondition:
    operator: str
    value: Any = None
    min: Any = None
    max: Any = None
    from_: str | None = None  # "from" on the wire
    to: str | None = None
    values: tuple[Any, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"operator": self.operator}
        if self.value is not None:
            out["value"] = self.value
        if self.min is not None:
            out["min"] = self.min
        if self.max is not None:
            out["max"] = self.max
        if self.from_ is not None:
            out["from"] = self.from_
        if self.to is not None:
            out["to"] = self.to
        if self.values is not None:
            out["values"] = list(self.values)
        return out


@dataclass(frozen=True)
class CanonicalFilter:
    filters: dict[str, FilterCondition]
    sort_by: str
    sort_order: str  # ASC | DESC
    page: int
    limit: int
    combine_operator: str  # AND | OR

    def filters_json(self) -> str:
        """JSONB payload for the query engine."""
        return json.dumps({name: cond.to_dict() for name, cond in self.filters.items()}, default=str)


@dataclass(frozen=True)
class FilterTranslation:
    """Translator output. is_valid is always True: every problem is a warning."""
    canonical: CanonicalFilter
    warnings: list[str] = field(default_factory=list)
    dropped_conditions: list[str] = field(default_factory=list)  # fields whose condition was discarded
    hard_errors: list[str] = field(default_factory=list)  # request-level problems (e.g. filters of an unusable type)
    is_valid: bool = True


@dataclass(frozen=True)
class FilterPage:
    total_count: int
    page_number: int
    page_size: int
    total_pages: int
    data: list[Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCount": self.total_count,
            "pageNumber": self.page_number,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
            "data": self.data,
        }
