from __future__ import annotations

import logging
import re
from typing import Any

import psycopg2
from psycopg2 import sql

from ..errors import FilterQueryError, StoreUnavailableError
from ..models.config_models import DEFAULT_FILTER_PROCEDURE
from ..models.filter_models import CanonicalFilter, FilterPage
from .connection import pooled_connection

"""Query engine for canonical filters: a PostgreSQL stored procedure.

    SELECT * FROM filter_ppic_dynamic(filters::JSONB, sort_by::TEXT,
        sort_order::TEXT, page::INTEGER, limit::INTEGER, combine::TEXT)

returns one row (total_count, page_number, page_size, total_pages, data).
An empty result is reported as an empty first page.
"""

__all__ = ["StoredProcedureFilterEngine"]

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class StoredProcedureFilterEngine:
    def __init__(self, *, pool: Any = None, connection: Any = None,
                 procedure: str = DEFAULT_FILTER_PROCEDURE) -> None:
        if pool is None and connection is None:
            raise ValueError("pool or connection required")
        if not _IDENTIFIER.match(procedure):
            raise ValueError(f"invalid procedure name: {procedure!r}")
        self._pool = pool
        self._connection = connection
        self._procedure = procedure

    def _statement(self) -> sql.Composed:
        parts = [sql.Identifier(p) for p in self._procedure.split(".")]
        return sql.SQL(
            "SELECT * FROM {}(%s::JSONB, %s::TEXT, %s::TEXT, %s::INTEGER, %s::INTEGER, %s::TEXT)"
        ).format(sql.SQL(".").join(parts))

    def _run(self, conn: Any, canonical: CanonicalFilter) -> Any:
        params = (
            canonical.filters_json(),
            canonical.sort_by,
            canonical.sort_order,
            canonical.page,
            canonical.limit,
            canonical.combine_operator,
        )
        with conn.cursor() as cur:
            cur.execute(self._statement(), params)
            row = cur.fetchone()
        conn.commit()
        return row

    def execute(self, canonical: CanonicalFilter) -> FilterPage:
        try:
            if self._connection is not None:
                row = self._run(self._connection, canonical)
            else:
                with pooled_connection(self._pool) as conn:
                    row = self._run(conn, canonical)
        except (psycopg2.Error, StoreUnavailableError) as e:
            raise FilterQueryError(f"Dynamic filter failed: {e}") from e

        if not row:
            logger.debug("filter procedure returned no row")
            return FilterPage(
                total_count=0,
                page_number=canonical.page,
                page_size=canonical.limit,
                total_pages=1,
                data=[],
            )
        total_count, page_number, page_size, total_pages, data = row
        return FilterPage(
            total_count=int(total_count or 0),
            page_number=int(page_number),
            page_size=int(page_size),
            total_pages=int(total_pages),
            data=list(data or []),
        )
