from __future__ import annotations

from ..models.batch_result import BatchResult

"""SUMMARY line and text report rendering for a BatchResult.

SUMMARY line format (stable, parsed by scripts):
SUMMARY batch={uuid} status={status} rows={total} success={n} failed={n}
skipped={n} merged={n} coerced={n} chunks={n} elapsed_ms={n} throughput_rps={x}
(one line, single spaces)
"""

__all__ = [
    "REPORT_TOP_ERRORS",
    "render_summary_line",
    "render_report",
    "success_rate",
]

REPORT_TOP_ERRORS = 10


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for tiny values
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def success_rate(result: BatchResult) -> str:
    if result.total_rows <= 0:
        return "0%"
    return f"{result.success_count / result.total_rows * 100:.2f}%"


def render_summary_line(result: BatchResult) -> str:
    attempted = result.success_count + result.failure_count
    seconds = result.processing_time_ms / 1000
    throughput = attempted / seconds if seconds > 0 else 0.0
    line = (
        f"SUMMARY batch={result.batch_id} "
        f"status={result.status.value} "
        f"rows={result.total_rows} "
        f"success={result.success_count} "
        f"failed={result.failure_count} "
        f"skipped={result.skipped_count} "
        f"merged={result.merged_count} "
        f"coerced={result.coerced_field_count} "
        f"chunks={result.total_chunks} "
        f"elapsed_ms={result.processing_time_ms} "
        f"throughput_rps={_format_number(throughput)}"
    )
    if result.cancelled:
        line += " cancelled=true"
    return line


def render_report(result: BatchResult, top: int = REPORT_TOP_ERRORS) -> str:
    """Human-readable report: summary block, created ids, first `top` failing rows."""
    lines = [
        "=== PURCHASE ORDER IMPORT REPORT ===",
        f"Batch ID: {result.batch_id}",
        f"Status: {result.status.value.upper()}" + (" (CANCELLED)" if result.cancelled else ""),
        "",
        "SUMMARY:",
        f"- Total Records: {result.total_rows}",
        f"- Successful: {result.success_count}",
        f"- Failed: {result.failure_count}",
        f"- Skipped: {result.skipped_count}",
        f"- Merged duplicates: {result.merged_count}",
        f"- Fields stored as text or truncated: {result.coerced_field_count}",
        f"- Success Rate: {success_rate(result)}",
        f"- Processing Time: {result.processing_time_ms}ms",
        f"- Completed: {result.timestamp.isoformat()}",
        "",
        "CREATED IDS:",
    ]
    lines.extend(f"  - {created}" for created in result.created_ids)

    failing = [r for r in result.row_errors if any(e.severity.value == "error" for e in r.errors)]
    if failing:
        lines.extend(["", f"ERRORS (Top {top}):"])
        for report in failing[:top]:
            lines.append(f"Row {report.row_index} (PO: {report.natural_key or 'N/A'}):")
            lines.extend(f"  - {e.field}: {e.message}" for e in report.errors)
    return "\n".join(lines) + "\n"
