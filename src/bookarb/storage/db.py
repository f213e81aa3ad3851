"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS order_seq START 1;

-- Last known state of each local book, one row per (venue, pair)
CREATE TABLE IF NOT EXISTS orderbooks (
    venue           VARCHAR NOT NULL,
    currency_pair   VARCHAR NOT NULL,
    asks            JSON NOT NULL,
    bids            JSON NOT NULL,
    updated_at      DOUBLE,
    PRIMARY KEY (venue, currency_pair)
);

-- Orders we placed: state 'executed' + type 'limit' means resting on the venue
CREATE TABLE IF NOT EXISTS orders (
    id              BIGINT PRIMARY KEY DEFAULT nextval('order_seq'),
    exchange        VARCHAR NOT NULL,
    currency_pair   VARCHAR NOT NULL,
    action          VARCHAR NOT NULL,
    type            VARCHAR NOT NULL,
    state           VARCHAR NOT NULL,
    price           DECIMAL(38, 12) NOT NULL,
    volume          DECIMAL(38, 12) NOT NULL,
    strategy        VARCHAR,
    created_at      BIGINT NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    ':memory:' opens an in-memory database."""
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables and sequences if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
