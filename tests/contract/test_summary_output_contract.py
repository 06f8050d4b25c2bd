from __future__ import annotations

import re
import threading

from lenient_import.models.import_row import ImportRow
from lenient_import.services.orchestrator import ImportOptions, persist_rows
from lenient_import.services.summary import render_summary_line

"""SUMMARY line format contract."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY batch=([0-9a-f-]{36}) status=(success|partial|failed) rows=([0-9]+) "
    r"success=([0-9]+) failed=([0-9]+) skipped=([0-9]+) merged=([0-9]+) coerced=([0-9]+) "
    r"chunks=([0-9]+) elapsed_ms=([0-9]+) throughput_rps=([0-9]+\.?[0-9]*)( cancelled=true)?$"
)


def _rows(n: int) -> list[ImportRow]:
    return [ImportRow(i, {"poNo": f"PO{i}"}) for i in range(1, n + 1)]


def test_summary_pattern_example_line():
    line = (
        "SUMMARY batch=0b9f8a52-2a35-4d7e-9a43-5c1a1f0e7d11 status=partial rows=4 success=3 failed=1 "
        "skipped=0 merged=0 coerced=2 chunks=1 elapsed_ms=84 throughput_rps=47.62"
    )
    assert SUMMARY_PATTERN.match(line)


def test_rendered_line_matches_contract(fake_store):
    result = persist_rows(_rows(3), fake_store, ImportOptions(batch_size=2))
    m = SUMMARY_PATTERN.match(render_summary_line(result))
    assert m, render_summary_line(result)
    assert m.group(2) == "success"
    assert m.group(3) == "3"
    assert m.group(9) == "2"
    assert m.group(12) is None


def test_cancelled_line_matches_contract(fake_store):
    event = threading.Event()
    event.set()
    result = persist_rows(_rows(2), fake_store, ImportOptions(), cancel_event=event)
    m = SUMMARY_PATTERN.match(render_summary_line(result))
    assert m
    assert m.group(12) == " cancelled=true"
