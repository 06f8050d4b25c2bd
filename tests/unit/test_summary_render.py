from __future__ import annotations

from datetime import UTC, datetime

import pytest

from lenient_import.models.batch_result import BatchResult, BatchStatus, ChunkStatsAccumulator, RowErrorReport
from lenient_import.models.import_row import FieldError, Severity
from lenient_import.services.summary import render_report, render_summary_line, success_rate


def _result(**overrides) -> BatchResult:
    values = dict(
        batch_id="b-1",
        total_rows=4,
        success_count=2,
        failure_count=1,
        status=BatchStatus.PARTIAL,
        created_ids=["po-1", "po-2"],
        row_errors=[
            RowErrorReport(2, [FieldError("foilQuantity", "stored as text")], "PO2"),
            RowErrorReport(3, [FieldError("general", "Purchase order PO3 already exists", Severity.ERROR)], "PO3"),
        ],
        processing_time_ms=1500,
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        skipped_count=1,
        merged_count=0,
        coerced_field_count=1,
        total_chunks=1,
    )
    values.update(overrides)
    return BatchResult(**values)


def test_summary_line():
    line = render_summary_line(_result())
    assert line == (
        "SUMMARY batch=b-1 status=partial rows=4 success=2 failed=1 skipped=1 "
        "merged=0 coerced=1 chunks=1 elapsed_ms=1500 throughput_rps=2"
    )


def test_summary_line_cancelled_and_zero_time():
    line = render_summary_line(_result(cancelled=True, processing_time_ms=0))
    assert "throughput_rps=0 " in line
    assert line.endswith(" cancelled=true")


def test_report_lists_only_failing_rows():
    report = render_report(_result())
    assert report.startswith("=== PURCHASE ORDER IMPORT REPORT ===\n")
    assert "Status: PARTIAL\n" in report
    assert "- Success Rate: 50.00%\n" in report
    assert "  - po-1\n" in report
    assert "ERRORS (Top 10):\nRow 3 (PO: PO3):\n  - general: Purchase order PO3 already exists\n" in report
    assert "Row 2" not in report


def test_report_without_failures_has_no_error_section():
    report = render_report(_result(failure_count=0, row_errors=[], status=BatchStatus.SUCCESS))
    assert "ERRORS" not in report


def test_success_rate_empty_batch():
    assert success_rate(_result(total_rows=0, success_count=0)) == "0%"


def test_to_dict_wire_keys():
    data = _result().to_dict()
    assert data["timestamp"] == "2024-05-01T12:00:00Z"
    assert data["perRowErrors"][1] == {
        "rowIndex": 3,
        "errors": [{"field": "general", "message": "Purchase order PO3 already exists", "severity": "error"}],
        "naturalKey": "PO3",
    }


def test_chunk_stats():
    stats = ChunkStatsAccumulator()
    assert stats.get_stats() == (0, 0.0, 0.0)
    stats.add_chunk_time(0.5)
    assert stats.get_stats() == (1, 0.5, 0.5)
    for t in (1.0, 1.5, 2.0):
        stats.add_chunk_time(t)
    total, avg, p95 = stats.get_stats()
    assert total == 4
    assert avg == pytest.approx(1.25)
    assert 1.5 < p95 <= 2.0
