from __future__ import annotations

from datetime import date, datetime

import psycopg2
import pytest
from psycopg2.extras import Json
from psycopg2.pool import PoolError

from lenient_import.db.purchase_orders import (
    PostgresPurchaseOrderStore,
    resolve_relative_expiry,
    sanitize_data,
    to_snake_case,
)
from lenient_import.errors import StoreUnavailableError


class DummyCursor:
    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query, params=None):
        self.conn.executed.append((query, params))
        for fragment, exc in self.conn.fail_on.items():
            if fragment in query:
                raise exc

    def fetchone(self):
        return self.conn.results.pop(0) if self.conn.results else None


class DummyConnection:
    def __init__(self, results=None, fail_on=None):
        self.results = list(results or [])
        self.fail_on = fail_on or {}
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self):
        return DummyCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class DummyPool:
    def __init__(self, conn=None, getconn_error=None):
        self.conn = conn
        self.getconn_error = getconn_error
        self.returned = []
        self.closed_all = False

    def getconn(self):
        if self.getconn_error is not None:
            raise self.getconn_error
        return self.conn

    def putconn(self, conn, close=False):
        self.returned.append(conn)

    def closeall(self):
        self.closed_all = True


def _store(conn):
    pool = DummyPool(conn)
    return PostgresPurchaseOrderStore(pool=pool), pool


def test_insert_new_record_with_customer_link_and_raw_bucket():
    conn = DummyConnection(results=[(7,), None, (101,)])
    store, pool = _store(conn)
    result = store.save({"poNo": "PO1", "gstNo": "G1", "brandName": "Amox", "colourCode": "red"})
    assert result.success
    assert result.id == "101"
    assert conn.commits == 1
    assert pool.returned == [conn]

    queries = [q for q, _ in conn.executed]
    assert "FROM customers" in queries[0]
    assert "WHERE po_no = %s" in queries[1]
    assert queries[2].startswith("INSERT INTO purchase_orders")
    insert_sql, params = conn.executed[2]
    for column in ('"po_no"', '"gst_no"', '"brand_name"', '"customer_id"', '"raw_imported_data"'):
        assert column in insert_sql
    assert "PO1" in params and 7 in params
    raw = [p for p in params if isinstance(p, Json)]
    assert len(raw) == 1
    assert raw[0].adapted == {"colourCode": "red"}


def test_existing_record_without_update_is_row_failure():
    conn = DummyConnection(results=[(5,)])
    store, _ = _store(conn)
    result = store.save({"poNo": "PO1"}, update_if_exists=False)
    assert not result.success
    assert result.error == "Purchase order PO1 already exists"
    assert conn.rollbacks == 1
    assert conn.commits == 0
    assert not any(q.startswith(("INSERT", "UPDATE")) for q, _ in conn.executed)


def test_existing_record_with_update():
    conn = DummyConnection(results=[(5,), (5,)])
    store, _ = _store(conn)
    result = store.save({"poNo": "PO1", "brandName": "Amox"}, update_if_exists=True)
    assert result.success
    assert result.id == "5"
    update_sql, params = conn.executed[-1]
    assert update_sql.startswith("UPDATE purchase_orders SET")
    assert "updated_at = now()" in update_sql
    assert params[-1] == 5
    assert conn.commits == 1


def test_constraint_violation_is_row_scoped():
    conn = DummyConnection(results=[None], fail_on={"INSERT": psycopg2.IntegrityError("duplicate key value")})
    store, _ = _store(conn)
    result = store.save({"poNo": "PO1"})
    assert not result.success
    assert "duplicate key value" in result.error
    assert conn.rollbacks == 1


def test_lost_connection_is_store_level():
    conn = DummyConnection(fail_on={"SELECT id FROM purchase_orders": psycopg2.OperationalError("server closed")})
    store, pool = _store(conn)
    with pytest.raises(StoreUnavailableError):
        store.save({"poNo": "PO1"})
    assert pool.returned == [conn]


def test_pool_exhaustion_is_store_level():
    pool = DummyPool(getconn_error=PoolError("connection pool exhausted"))
    store = PostgresPurchaseOrderStore(pool=pool)
    with pytest.raises(StoreUnavailableError):
        store.save({"poNo": "PO1"})


def test_store_requires_dsn_or_pool():
    with pytest.raises(StoreUnavailableError):
        PostgresPurchaseOrderStore()


def test_close_closes_pool():
    store, pool = _store(DummyConnection())
    store.close()
    assert pool.closed_all


def test_sanitize_data_splits_recognized_and_raw():
    columns, unmapped = sanitize_data({
        "poNo": "PO1",
        "S. NO.": 1,
        "Unnamed: 3": "x",
        "__EMPTY_2": "y",
        "notes": "",
        "colourCode": "red",
        "poDate": datetime(2024, 1, 15),
        "expiry": "2 years",
    })
    assert columns == {
        "poNo": "PO1",
        "poDate": datetime(2024, 1, 15),
        "expiry": datetime(2026, 1, 15),
    }
    assert unmapped == {"colourCode": "red"}


def test_to_snake_case():
    assert to_snake_case("poNo") == "po_no"
    assert to_snake_case("foilPoDate") == "foil_po_date"
    assert to_snake_case("expiry") == "expiry"


def test_resolve_relative_expiry():
    assert resolve_relative_expiry("18 months", {}, today=date(2024, 1, 31)) == datetime(2025, 7, 31)
    assert resolve_relative_expiry("30 days", {"packingDate": "01/02/2024"}) == datetime(2024, 3, 2)
    assert resolve_relative_expiry("1 yr", {"poDate": datetime(2024, 6, 1)}) == datetime(2025, 6, 1)
    assert resolve_relative_expiry("  best   before ", {}) == "best before"
    assert resolve_relative_expiry(5, {}) == 5
