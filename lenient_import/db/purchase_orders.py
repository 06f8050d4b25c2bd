from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime
from functools import partial
from typing import Any

import pandas as pd
import psycopg2
from psycopg2.extras import Json

from ..errors import StoreUnavailableError
from ..mapping.schema import RECOGNIZED_FIELDS, SKIP_FIELDS
from ..models.persist_result import PersistResult
from ..normalize.values import is_blank, parse_date
from .connection import create_pool, pooled_connection

"""Purchase-order persistence adapter (PostgreSQL / psycopg2).

save() contract:
- success  -> PersistResult(True, id)
- duplicate po_no without update_if_exists, constraint violation, bad value
  -> PersistResult(False, error=...)   (row-scoped, the batch continues)
- connection lost / pool exhausted -> StoreUnavailableError (chunk-scoped)

Each save() runs on its own pooled connection and commits or rolls back by
itself; there is no batch-wide transaction.
"""

__all__ = [
    "PersistResult",
    "PostgresPurchaseOrderStore",
    "sanitize_data",
    "to_snake_case",
    "resolve_relative_expiry",
]

logger = logging.getLogger(__name__)

_UNNAMED_PREFIX = "Unnamed:"
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")
_DURATION = re.compile(r"(\d+)\s*(years?|yrs?|months?|mos?|days?|d)\b", re.IGNORECASE)

_SQL_CUSTOMER_BY_GST = "SELECT id FROM customers WHERE gst_no = %s LIMIT 1"


def to_snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def _is_skipped(key: str) -> bool:
    return key in SKIP_FIELDS or key.startswith("__EMPTY") or key.startswith(_UNNAMED_PREFIX)


def resolve_relative_expiry(value: Any, data: dict[str, Any], today: date | None = None) -> Any:
    """"2 years" / "18 months" / "30 days" -> absolute date.

    Base date: packingDate, else poDate, else today. Values that are not a
    duration are returned unchanged (whitespace collapsed for strings).
    """
    if not isinstance(value, str):
        return value
    text = " ".join(value.split())
    match = _DURATION.search(text)
    if match is None:
        return text

    base = None
    for key in ("packingDate", "poDate"):
        candidate = data.get(key)
        if not is_blank(candidate):
            base = parse_date(candidate)
            if base is not None:
                break
    if base is None:
        base = datetime.combine(today or date.today(), datetime.min.time())

    amount = int(match.group(1))
    unit = match.group(2).lower()
    if unit.startswith(("year", "yr")):
        offset = pd.DateOffset(years=amount)
    elif unit.startswith("mo"):
        offset = pd.DateOffset(months=amount)
    else:
        offset = pd.DateOffset(days=amount)
    return (pd.Timestamp(base) + offset).to_pydatetime()


def sanitize_data(data: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a mapped row into (recognized columns, raw_imported_data bucket).

    Recognized keys keep their camelCase names here; the store converts them
    to column names.
    """
    columns: dict[str, Any] = {}
    unmapped: dict[str, Any] = {}
    for key, value in data.items():
        if value is None or value == "":
            continue
        if _is_skipped(key):
            continue
        if key in RECOGNIZED_FIELDS:
            if key == "expiry":
                value = resolve_relative_expiry(value, data)
            columns[key] = value
        else:
            unmapped[key] = value
    return columns, unmapped


_json_dumps = partial(json.dumps, default=str, ensure_ascii=False)


class PostgresPurchaseOrderStore:
    """Create-or-update purchase orders, one pooled connection per call.

    Thread-safe: the orchestrator calls save() from worker threads.
    """

    def __init__(self, dsn: str | None = None, *, pool: Any = None, max_connections: int = 50,
                 table: str = "purchase_orders") -> None:
        if pool is None:
            if not dsn:
                raise StoreUnavailableError("no database DSN configured")
            pool = create_pool(dsn, max_connections)
        self._pool = pool
        self._table = table

    def _customer_id(self, cur: Any, gst_no: Any) -> Any:
        cur.execute(_SQL_CUSTOMER_BY_GST, (str(gst_no),))
        found = cur.fetchone()
        return found[0] if found else None

    def _existing_id(self, cur: Any, po_no: Any) -> Any:
        cur.execute(f"SELECT id FROM {self._table} WHERE po_no = %s LIMIT 1", (str(po_no),))
        found = cur.fetchone()
        return found[0] if found else None

    def _insert(self, cur: Any, values: dict[str, Any]) -> Any:
        if not values:
            cur.execute(f"INSERT INTO {self._table} DEFAULT VALUES RETURNING id")
            return cur.fetchone()[0]
        cols = list(values)
        cols_sql = ",".join(f'"{c}"' for c in cols)
        placeholders = ",".join(["%s"] * len(cols))
        cur.execute(
            f"INSERT INTO {self._table} ({cols_sql}) VALUES ({placeholders}) RETURNING id",
            [values[c] for c in cols],
        )
        return cur.fetchone()[0]

    def _update(self, cur: Any, record_id: Any, values: dict[str, Any]) -> Any:
        assignments = ",".join([f'"{c}" = %s' for c in values] + ["updated_at = now()"])
        cur.execute(
            f"UPDATE {self._table} SET {assignments} WHERE id = %s RETURNING id",
            [*values.values(), record_id],
        )
        return cur.fetchone()[0]

    def _column_values(self, data: dict[str, Any]) -> dict[str, Any]:
        columns, unmapped = sanitize_data(data)
        values = {to_snake_case(k): v for k, v in columns.items()}
        if unmapped:
            values["raw_imported_data"] = Json(unmapped, dumps=_json_dumps)
        return values

    def save(self, data: dict[str, Any], update_if_exists: bool = False) -> PersistResult:
        values = self._column_values(data)
        po_no = data.get("poNo")

        with pooled_connection(self._pool) as conn:
            try:
                with conn.cursor() as cur:
                    if data.get("gstNo") and "customer_id" not in values:
                        customer_id = self._customer_id(cur, data["gstNo"])
                        if customer_id is not None:
                            values["customer_id"] = customer_id

                    existing = self._existing_id(cur, po_no) if po_no else None
                    if existing is not None and not update_if_exists:
                        conn.rollback()
                        return PersistResult(False, error=f"Purchase order {po_no} already exists")

                    if existing is not None:
                        record_id = self._update(cur, existing, values)
                    else:
                        record_id = self._insert(cur, values)
                conn.commit()
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                raise StoreUnavailableError(str(e)) from e
            except psycopg2.Error as e:
                conn.rollback()
                logger.debug("row rejected po_no=%r: %s", po_no, e)
                return PersistResult(False, error=str(e).strip())
        return PersistResult(True, id=str(record_id))

    def close(self) -> None:
        self._pool.closeall()
