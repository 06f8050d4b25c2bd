from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import ParseError
from ..logging.error_log import ErrorLogBuffer
from ..mapping.aliases import FIELD_ALIASES
from ..mapping.builder import MappingDetection
from ..mapping.builder import detect_mapping as _detect_mapping
from ..mapping.row_validator import validate_row
from ..models.batch_result import BatchResult
from ..models.import_row import ImportRow, RowStatus
from ..sheets.reader import kind_from_filename, parse_sheet_data
from .orchestrator import ImportOptions, persist_rows

"""Import entry points.

bulk_import():  bytes -> parse -> mapping -> validate -> persist -> BatchResult
detect_mapping(): headers -> mapping + confidence (preview)
test_mapping(): sample rows + mapping -> validated rows + counts (dry run)

Only structural problems raise (ParseError): unreadable input, no rows, no
usable mapping. Everything row-scoped ends up in the BatchResult.
"""

__all__ = [
    "MappingTestResult",
    "bulk_import",
    "import_file",
    "detect_mapping",
    "test_mapping",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingTestResult:
    validated_rows: list[ImportRow]
    summary: dict[str, int] = field(default_factory=dict)  # total, valid, warnings, errors


def detect_mapping(
    headers: list[str],
    aliases: dict[str, list[str]] | None = None,
    *,
    fuzzy: bool = False,
) -> MappingDetection:
    detection = _detect_mapping(headers, aliases, fuzzy=fuzzy)
    logger.debug(
        "mapping detected fields=%d/%d confidence=%.2f unmapped=%s",
        len(detection.mapping), len(headers), detection.confidence, detection.unmapped_headers,
    )
    return detection


def test_mapping(sample_rows: list[dict[str, Any]], mapping: dict[str, str]) -> MappingTestResult:
    validated = [validate_row(row, mapping, idx) for idx, row in enumerate(sample_rows, start=1)]
    return MappingTestResult(
        validated_rows=validated,
        summary={
            "total": len(validated),
            "valid": sum(1 for r in validated if r.status is RowStatus.SUCCESS),
            "warnings": sum(1 for r in validated if r.status is RowStatus.WARNING),
            "errors": sum(1 for r in validated if r.status is RowStatus.ERROR),
        },
    )


# keep pytest from collecting the dry-run entry point as a test
test_mapping.__test__ = False  # type: ignore[attr-defined]


def bulk_import(
    content: bytes,
    file_kind: str,
    store: Any,
    options: ImportOptions | None = None,
    *,
    aliases: dict[str, list[str]] | None = None,
    cancel_event: threading.Event | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> BatchResult:
    """Import one uploaded buffer of kind xlsx | csv | json."""
    options = options or ImportOptions()
    started = time.perf_counter()
    batch_id = str(uuid.uuid4())

    sheet = parse_sheet_data(content, file_kind, options.null_sentinels)
    if not sheet.rows:
        raise ParseError("No data found in sheet")

    mapping = dict(options.mapping_strategy)
    if not mapping and options.auto_detect_mapping:
        detection = detect_mapping(sheet.headers, aliases or FIELD_ALIASES, fuzzy=options.fuzzy_mapping)
        mapping = detection.mapping
        if detection.unmapped_headers:
            logger.info("unmapped headers (kept out of the import): %s", ", ".join(map(str, detection.unmapped_headers)))
    if not mapping:
        raise ParseError("Could not determine field mapping")

    logger.info("batch=%s rows=%d mapped_fields=%d", batch_id, len(sheet.rows), len(mapping))
    rows = [validate_row(raw, mapping, idx) for idx, raw in enumerate(sheet.rows, start=1)]

    return persist_rows(
        rows,
        store,
        options,
        batch_id=batch_id,
        cancel_event=cancel_event,
        error_log=error_log,
        started_at=started,
    )


def import_file(
    path: Path | str,
    store: Any,
    options: ImportOptions | None = None,
    **kwargs: Any,
) -> BatchResult:
    """bulk_import() for a file on disk; the kind comes from the extension."""
    path = Path(path)
    kind = kind_from_filename(path.name)
    try:
        content = path.read_bytes()
    except OSError as e:
        raise ParseError(f"Cannot read {path}: {e}") from e
    return bulk_import(content, kind, store, options, **kwargs)
