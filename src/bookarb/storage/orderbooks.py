"""Persist local book state to DuckDB as [price, volume, timestamp] triples per side."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog

from bookarb.models.orderbook import BookRecord

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

    from bookarb.orderbook.engine import OrderBook

log = structlog.get_logger(__name__)


def save_orderbook(conn: DuckDBPyConnection, book: OrderBook) -> None:
    """Upsert the book's current state."""
    record = book.to_record()
    payload = record.to_payload()
    conn.execute(
        """
        INSERT OR REPLACE INTO orderbooks (venue, currency_pair, asks, bids, updated_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        [
            book.venue,
            book.currency_pair,
            json.dumps(payload["asks"]),
            json.dumps(payload["bids"]),
            record.updated_at,
        ],
    )


def _json_column(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


def load_orderbook(conn: DuckDBPyConnection, venue: str, currency_pair: str) -> BookRecord | None:
    """Return the stored record, or None. Levels come back in stored order; OrderBook.fill_* re-sorts them."""
    row = conn.execute(
        "SELECT asks, bids, updated_at FROM orderbooks WHERE venue = ? AND currency_pair = ?",
        [venue, currency_pair],
    ).fetchone()
    if not row:
        return None
    return BookRecord.from_payload(
        {"asks": _json_column(row[0]), "bids": _json_column(row[1]), "updated_at": row[2]}
    )


def list_orderbooks(conn: DuckDBPyConnection) -> list[dict[str, Any]]:
    rows = conn.execute(
        "SELECT venue, currency_pair, updated_at FROM orderbooks ORDER BY venue, currency_pair"
    ).fetchall()
    return [{"venue": r[0], "currency_pair": r[1], "updated_at": r[2]} for r in rows]


class DuckDBBookStore:
    """Book store bound to one connection. Each call uses its own cursor so it can be shared across threads."""

    def __init__(self, conn: DuckDBPyConnection) -> None:
        self._conn = conn

    def save(self, book: OrderBook) -> None:
        cur = self._conn.cursor()
        try:
            save_orderbook(cur, book)
        finally:
            cur.close()

    def load(self, venue: str, currency_pair: str) -> BookRecord | None:
        cur = self._conn.cursor()
        try:
            return load_orderbook(cur, venue, currency_pair)
        finally:
            cur.close()
