from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..errors import StoreUnavailableError
from ..logging.error_log import ErrorLogBuffer
from ..models.batch_result import (
    BatchResult,
    ChunkStatsAccumulator,
    RowErrorReport,
    derive_batch_status,
)
from ..models.config_models import DEFAULT_BATCH_SIZE, ImportSettings
from ..models.error_record import ErrorRecord
from ..models.import_row import ImportRow, RowStatus
from ..models.persist_result import PersistResult
from ..normalize.values import is_blank
from .progress import ProgressTracker

"""Batch import orchestration: validated rows -> store -> BatchResult.

1. merge rows sharing a natural key (poNo + gstNo), later non-empty values win
2. drop rows already in error when skip_on_error is set
3. split into chunks of batch_size; chunks run one after another
4. rows of a chunk are saved concurrently, each through its own store.save()
5. a row failure stays on that row; a store-level fault fails its whole chunk
6. no rollback of earlier chunks, no retries

The store is any object with save(data, update_if_exists) -> PersistResult.
Result bookkeeping happens on the calling thread after each chunk completes.
"""

__all__ = [
    "ImportOptions",
    "natural_key",
    "dedupe_rows",
    "persist_rows",
]

logger = logging.getLogger(__name__)

_NON_COERCION_FIELDS = frozenset({"general", "transaction"})


@dataclass(frozen=True)
class ImportOptions:
    """Per-call import options.

    mapping_strategy: explicit canonical field -> header mapping; when empty and
        auto_detect_mapping is true the mapping is detected from the headers.
    """
    mapping_strategy: dict[str, str] = field(default_factory=dict)
    skip_on_error: bool = False
    update_if_exists: bool = False
    auto_detect_mapping: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    fuzzy_mapping: bool = False
    null_sentinels: frozenset[str] = frozenset()

    @classmethod
    def from_settings(cls, settings: ImportSettings, **overrides: Any) -> ImportOptions:
        values: dict[str, Any] = {
            "skip_on_error": settings.skip_on_error,
            "update_if_exists": settings.update_if_exists,
            "auto_detect_mapping": settings.auto_detect_mapping,
            "batch_size": settings.batch_size,
            "fuzzy_mapping": settings.fuzzy_mapping,
            "null_sentinels": settings.null_sentinels,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def natural_key(data: dict[str, Any]) -> str | None:
    """Upper-cased, trimmed poNo|gstNo; None when the row has no poNo."""
    po_no = data.get("poNo")
    if is_blank(po_no):
        return None
    gst_no = data.get("gstNo")
    gst = "" if is_blank(gst_no) else str(gst_no).strip().upper()
    return f"{str(po_no).strip().upper()}|{gst}"


def dedupe_rows(rows: list[ImportRow]) -> tuple[list[ImportRow], int]:
    """Merge rows sharing a natural key into the first occurrence.

    Later rows overwrite earlier values field by field, for non-empty values
    only. Their field warnings move to the surviving row.
    Returns (surviving rows in source order, number of rows merged away).
    """
    kept: list[ImportRow] = []
    by_key: dict[str, ImportRow] = {}
    merged = 0
    for row in rows:
        key = natural_key(row.data)
        if key is None or key not in by_key:
            kept.append(row)
            if key is not None:
                by_key[key] = row
            continue

        target = by_key[key]
        for name, value in row.data.items():
            if value is not None and value != "":
                target.data[name] = value
        target.errors.extend(row.errors)
        if row.status is RowStatus.ERROR:
            target.status = RowStatus.ERROR
        elif row.errors and target.status is RowStatus.SUCCESS:
            target.status = RowStatus.WARNING
        merged += 1
        logger.debug("row %d merged into row %d (key=%s)", row.row_index, target.row_index, key)
    return kept, merged


def _chunks(rows: list[ImportRow], size: int) -> list[list[ImportRow]]:
    size = max(1, size)
    return [rows[i:i + size] for i in range(0, len(rows), size)]


def _save_row(store: Any, row: ImportRow, update_if_exists: bool) -> PersistResult:
    """Runs on a worker thread. Row-scoped exceptions become a failed result."""
    try:
        return store.save(dict(row.data), update_if_exists)
    except StoreUnavailableError:
        raise
    except Exception as e:
        logger.debug("save raised for row %d", row.row_index, exc_info=True)
        return PersistResult(False, error=str(e) or type(e).__name__)


def _log_row_error(
    error_log: ErrorLogBuffer | None,
    batch_id: str,
    row: ImportRow,
    field_name: str,
    error_type: str,
    message: str,
) -> None:
    if error_log is None:
        return
    po_no = row.data.get("poNo")
    error_log.append(ErrorRecord.create(
        batch_id,
        row.row_index,
        error_type,
        message,
        field=field_name,
        natural_key=None if is_blank(po_no) else str(po_no),
    ))


def _run_chunk(
    chunk: list[ImportRow],
    store: Any,
    update_if_exists: bool,
) -> list[PersistResult | None]:
    """Save every row of a chunk concurrently; None marks rows not sent to the store."""
    results: list[PersistResult | None] = [None] * len(chunk)
    pending = [(i, row) for i, row in enumerate(chunk) if row.status is not RowStatus.ERROR]
    if not pending:
        return results
    with ThreadPoolExecutor(max_workers=len(pending)) as executor:
        futures = {executor.submit(_save_row, store, row, update_if_exists): i for i, row in pending}
    # leaving the with-block waited for every row; re-raise the first store fault
    for future, i in futures.items():
        results[i] = future.result()
    return results


def persist_rows(
    rows: list[ImportRow],
    store: Any,
    options: ImportOptions | None = None,
    *,
    batch_id: str | None = None,
    cancel_event: threading.Event | None = None,
    error_log: ErrorLogBuffer | None = None,
    started_at: float | None = None,
) -> BatchResult:
    """Persist validated rows chunk by chunk and fold the outcome into a BatchResult.

    Never raises for row-level problems. cancel_event is checked before each
    chunk; once set, no further chunk starts and the result is flagged
    cancelled.
    """
    options = options or ImportOptions()
    batch_id = batch_id or str(uuid.uuid4())
    start = started_at if started_at is not None else time.perf_counter()
    total_rows = len(rows)

    coerced = sum(
        1 for row in rows for err in row.warnings if err.field not in _NON_COERCION_FIELDS
    )

    working, merged_count = dedupe_rows(rows)
    skipped: list[ImportRow] = []
    if options.skip_on_error:
        skipped = [r for r in working if r.status is RowStatus.ERROR]
        working = [r for r in working if r.status is not RowStatus.ERROR]
        if skipped:
            logger.info("skipping %d row(s) already in error", len(skipped))

    chunks = _chunks(working, options.batch_size)
    stats = ChunkStatsAccumulator()
    successful: list[ImportRow] = []
    failed: list[ImportRow] = []
    cancelled = False

    with ProgressTracker(len(working)) as progress:
        for number, chunk in enumerate(chunks, start=1):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                logger.warning(
                    "import cancelled before chunk %d/%d; %d row(s) not attempted",
                    number, len(chunks), sum(len(c) for c in chunks[number - 1:]),
                )
                break

            progress.start_chunk(number, len(chunks))
            chunk_start = time.perf_counter()
            try:
                results = _run_chunk(chunk, store, options.update_if_exists)
            except Exception as e:
                logger.error("chunk %d/%d failed: %s", number, len(chunks), e)
                message = f"Batch processing failed: {e}"
                for row in chunk:
                    row.mark_failed("transaction", message)
                    failed.append(row)
                    _log_row_error(error_log, batch_id, row, "transaction", "CHUNK_FAULT", message)
            else:
                for row, result in zip(chunk, results, strict=True):
                    if result is None:
                        row.mark_failed("general", "Row has validation errors")
                        failed.append(row)
                        _log_row_error(error_log, batch_id, row, "general", "VALIDATION_ERROR",
                                       "Row has validation errors")
                    elif result.success:
                        row.mark_persisted(str(result.id))
                        successful.append(row)
                    else:
                        message = result.error or "unknown persistence error"
                        row.mark_failed("general", message)
                        failed.append(row)
                        _log_row_error(error_log, batch_id, row, "general", "ROW_PERSIST_ERROR", message)

            elapsed = time.perf_counter() - chunk_start
            stats.add_chunk_time(elapsed)
            logger.debug("chunk %d/%d rows=%d elapsed=%.3fs", number, len(chunks), len(chunk), elapsed)
            progress.finish_chunk(len(chunk))
            progress.set_postfix(ok=len(successful), failed=len(failed))

    if error_log is not None:
        try:
            path = error_log.flush()
        except OSError as e:
            logger.warning("could not write error log: %s", e)
        else:
            if path is not None:
                logger.info("row errors written to %s", path)

    reported = sorted(
        (r for r in working + skipped if r.errors),
        key=lambda r: r.row_index,
    )
    total_chunks, avg_chunk, p95_chunk = stats.get_stats()
    return BatchResult(
        batch_id=batch_id,
        total_rows=total_rows,
        success_count=len(successful),
        failure_count=len(failed),
        status=derive_batch_status(len(successful), len(failed)),
        created_ids=[str(r.persisted_id) for r in successful],
        row_errors=[
            RowErrorReport(
                row_index=r.row_index,
                errors=list(r.errors),
                natural_key=None if is_blank(r.data.get("poNo")) else str(r.data["poNo"]),
            )
            for r in reported
        ],
        processing_time_ms=int((time.perf_counter() - start) * 1000),
        timestamp=datetime.now(UTC),
        skipped_count=len(skipped),
        merged_count=merged_count,
        coerced_field_count=coerced,
        cancelled=cancelled,
        total_chunks=total_chunks,
        avg_chunk_seconds=avg_chunk,
        p95_chunk_seconds=p95_chunk,
    )
