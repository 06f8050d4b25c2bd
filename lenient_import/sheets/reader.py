from __future__ import annotations

import io
import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import pandas as pd

from ..errors import ParseError
from ..normalize.values import is_blank

"""Sheet parsing adapter: raw bytes -> headers + raw rows.

- xlsx: first worksheet, first row is the header (openpyxl engine)
- csv : first line is the header; cell text kept verbatim ("NA" stays "NA")
- json: a list of objects, or {"data": [...]}

Blank cells and configured null sentinels become None. Rows where every
cell is empty are dropped. Any failure surfaces as ParseError.
"""

__all__ = [
    "SUPPORTED_KINDS",
    "SheetData",
    "parse_sheet_data",
    "kind_from_filename",
]

SUPPORTED_KINDS = ("xlsx", "csv", "json")


@dataclass
class SheetData:
    headers: list[str]
    rows: list[dict[str, Any]]  # header -> raw cell value


def kind_from_filename(name: str) -> str:
    suffix = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if suffix == "xls":
        suffix = "xlsx"
    if suffix not in SUPPORTED_KINDS:
        raise ParseError(f"Unsupported file type: {suffix or name}")
    return suffix


def _clean_cell(value: Any, null_sentinels: set[str] | None) -> Any:
    if is_blank(value):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if null_sentinels and stripped.upper() in null_sentinels:
            return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def _frame_to_sheet(df: pd.DataFrame, null_sentinels: set[str] | None) -> SheetData:
    headers = [str(c).strip() for c in df.columns.tolist()]
    rows: list[dict[str, Any]] = []
    for raw in df.itertuples(index=False, name=None):
        row = {h: _clean_cell(v, null_sentinels) for h, v in zip(headers, raw, strict=False)}
        if all(v is None for v in row.values()):
            continue
        rows.append(row)
    return SheetData(headers=headers, rows=rows)


def _parse_json(content: bytes, null_sentinels: set[str] | None) -> SheetData:
    data = json.loads(content.decode("utf-8-sig"))
    if isinstance(data, list):
        records = data
    elif isinstance(data, dict):
        records = data.get("data") or []
    else:
        records = None
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ValueError("expected a list of objects or {\"data\": [...]}")
    headers = [str(k) for k in records[0].keys()] if records else []
    rows = []
    for record in records:
        row = {str(k): _clean_cell(v, null_sentinels) for k, v in record.items()}
        if all(v is None for v in row.values()):
            continue
        rows.append(row)
    return SheetData(headers=headers, rows=rows)


def parse_sheet_data(
    content: bytes,
    kind: str,
    null_sentinels: Iterable[str] | None = None,
) -> SheetData:
    """Parse an uploaded buffer of the declared kind.

    Parameters
    ----------
    content: file bytes
    kind: xlsx | csv | json
    null_sentinels: cell strings (case-insensitive) treated as empty, e.g. "N/A"
    """
    sentinels = {s.strip().upper() for s in null_sentinels} if null_sentinels else None
    kind = kind.lower()
    try:
        if kind == "json":
            return _parse_json(content, sentinels)
        if kind == "csv":
            df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, skip_blank_lines=True)
            return _frame_to_sheet(df, sentinels)
        if kind == "xlsx":
            df = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=object, keep_default_na=False)
            return _frame_to_sheet(df, sentinels)
    except Exception as e:
        raise ParseError(f"Failed to parse sheet data: {e}") from e
    raise ParseError(f"Unsupported file type: {kind}")
