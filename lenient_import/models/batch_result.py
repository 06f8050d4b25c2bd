from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .import_row import FieldError

"""Batch result models for the lenient import engine.

BatchResult is the terminal report of one import call. Counters follow the
rule success_count + failure_count <= total_rows: rows excluded by
skip_on_error, rows merged into an earlier duplicate and rows never scheduled
because of cancellation are in neither counter.
"""

__all__ = [
    "BatchStatus",
    "RowErrorReport",
    "BatchResult",
    "ChunkStatsAccumulator",
    "derive_batch_status",
]


class BatchStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


def derive_batch_status(success_count: int, failure_count: int) -> BatchStatus:
    """failed if nothing succeeded and something failed; partial if both; success otherwise."""
    if success_count == 0 and failure_count > 0:
        return BatchStatus.FAILED
    if success_count > 0 and failure_count > 0:
        return BatchStatus.PARTIAL
    return BatchStatus.SUCCESS


@dataclass(frozen=True)
class RowErrorReport:
    """Per-row diagnostics folded from an ImportRow."""
    row_index: int
    errors: list[FieldError]
    natural_key: str | None = None  # poNo of the row, when present

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "rowIndex": self.row_index,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.natural_key is not None:
            out["naturalKey"] = self.natural_key
        return out


@dataclass(frozen=True)
class BatchResult:
    batch_id: str  # uuid4
    total_rows: int
    success_count: int
    failure_count: int
    status: BatchStatus
    created_ids: list[str]
    row_errors: list[RowErrorReport]
    processing_time_ms: int
    timestamp: datetime  # UTC
    skipped_count: int = 0  # excluded by skip_on_error
    merged_count: int = 0  # folded into an earlier row with the same natural key
    coerced_field_count: int = 0  # fields stored as string after a failed typed parse, or truncated
    cancelled: bool = False
    total_chunks: int = 0
    avg_chunk_seconds: float = 0.0
    p95_chunk_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Wire shape (camelCase keys)."""
        return {
            "batchId": self.batch_id,
            "totalRows": self.total_rows,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "skippedCount": self.skipped_count,
            "mergedCount": self.merged_count,
            "coercedFieldCount": self.coerced_field_count,
            "status": self.status.value,
            "cancelled": self.cancelled,
            "createdIds": list(self.created_ids),
            "perRowErrors": [r.to_dict() for r in self.row_errors],
            "processingTimeMs": self.processing_time_ms,
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
        }


class ChunkStatsAccumulator:
    """Collects per-chunk timings and summarises them (count, mean, p95)."""

    def __init__(self) -> None:
        self.chunk_times: list[float] = []

    def add_chunk_time(self, elapsed_seconds: float) -> None:
        self.chunk_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """
        Returns:
            tuple: (total_chunks, avg_chunk_seconds, p95_chunk_seconds)
        """
        if not self.chunk_times:
            return (0, 0.0, 0.0)

        total = len(self.chunk_times)
        avg = statistics.mean(self.chunk_times)
        if total == 1:
            p95 = self.chunk_times[0]
        else:
            # 19th of 20 inclusive quantiles
            p95 = statistics.quantiles(self.chunk_times, n=20, method="inclusive")[18]
        return (total, avg, p95)
