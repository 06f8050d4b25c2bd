from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""ImportRow model for the lenient import engine.

An ImportRow is created by the row validator, mutated in place during the
persistence phase (status, persisted_id, appended errors) and folded into the
terminal BatchResult.

Lenient contract: validation problems only ever produce WARNING. ERROR is
reachable only through a persistence failure.
"""

__all__ = [
    "Severity",
    "RowStatus",
    "FieldError",
    "ImportRow",
]


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class RowStatus(str, Enum):
    """Row lifecycle: success | warning (after validation) -> success | error (after persistence)."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class FieldError:
    field: str  # canonical field, or "general" / "transaction" for persistence failures
    message: str
    severity: Severity = Severity.WARNING

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message, "severity": self.severity.value}


@dataclass
class ImportRow:
    """One source row after mapping and normalization."""
    row_index: int  # 1-based, mirrors the source row
    data: dict[str, Any] = field(default_factory=dict)  # canonical field -> normalized value
    errors: list[FieldError] = field(default_factory=list)
    status: RowStatus = RowStatus.SUCCESS
    persisted_id: str | None = None

    @property
    def warnings(self) -> list[FieldError]:
        return [e for e in self.errors if e.severity is Severity.WARNING]

    def add_warning(self, field_name: str, message: str) -> None:
        self.errors.append(FieldError(field_name, message, Severity.WARNING))
        if self.status is RowStatus.SUCCESS:
            self.status = RowStatus.WARNING

    def mark_failed(self, field_name: str, message: str) -> None:
        self.errors.append(FieldError(field_name, message, Severity.ERROR))
        self.status = RowStatus.ERROR

    def mark_persisted(self, persisted_id: str) -> None:
        self.persisted_id = persisted_id
        self.status = RowStatus.SUCCESS
