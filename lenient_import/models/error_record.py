from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the per-row error log.

One record per failed row (or per chunk-level fault, with row=-1), written as
JSON Lines by logging.error_log.ErrorLogBuffer. The key set is fixed.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        batch_id: Import batch identifier
        row: Source row number (1-based). -1 when the row cannot be determined
        natural_key: poNo of the row, empty string when absent
        field: Canonical field, or "general" / "transaction"
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Persistence or validation message
    """
    timestamp: str
    batch_id: str
    row: int
    natural_key: str
    field: str
    error_type: str
    message: str

    @staticmethod
    def create(
        batch_id: str,
        row: int,
        error_type: str,
        message: str,
        *,
        field: str = "general",
        natural_key: str | None = None,
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            batch_id=batch_id,
            row=row,
            natural_key=natural_key or "",
            field=field,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
