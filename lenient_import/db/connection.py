from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.pool import ThreadedConnectionPool

from ..errors import StoreUnavailableError
from ..models.config_models import DatabaseConfig

"""PostgreSQL connection helpers.

Connection parameter precedence:
    1. DATABASE_URL / PGDSN (full DSN)
    2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the database section of config/import.yml (fallback for missing parts)

The CLI loads .env with override=True before calling resolve_dsn(), so .env
values win over whatever was already in the environment.
"""

__all__ = [
    "resolve_dsn",
    "create_pool",
    "pooled_connection",
]


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def create_pool(dsn: str, maxconn: int) -> Any:
    """ThreadedConnectionPool sized for one connection per concurrent row."""
    try:
        return ThreadedConnectionPool(1, max(1, maxconn), dsn)
    except psycopg2.Error as e:
        raise StoreUnavailableError(f"cannot connect to database: {e}") from e


@contextmanager
def pooled_connection(pool: Any):
    """Borrow a connection; pool exhaustion or a dead server is a store-level fault."""
    try:
        conn = pool.getconn()
    except psycopg2.Error as e:
        raise StoreUnavailableError(f"no database connection available: {e}") from e
    try:
        yield conn
    finally:
        pool.putconn(conn, close=bool(getattr(conn, "closed", False)))
