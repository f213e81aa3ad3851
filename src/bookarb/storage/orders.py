"""Our own orders in DuckDB - recorded by strategies, read back as the own-order snapshot."""

from __future__ import annotations

import time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from bookarb.errors import InvalidArgument
from bookarb.models.orderbook import OwnOrderSet

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

ACTIONS = ("buy", "sell")
ORDER_TYPES = ("limit", "market")
# executed: accepted by the venue and (for limit orders) resting
ORDER_STATES = ("executed", "filled", "cancelled")


def record_order(
    conn: DuckDBPyConnection,
    *,
    exchange: str,
    currency_pair: str,
    action: str,
    order_type: str,
    price: Decimal,
    volume: Decimal,
    state: str = "executed",
    strategy: str | None = None,
) -> int:
    """Insert one order row and return its id."""
    if action not in ACTIONS:
        raise InvalidArgument(f"unknown order action: {action!r}")
    if order_type not in ORDER_TYPES:
        raise InvalidArgument(f"unknown order type: {order_type!r}")
    if state not in ORDER_STATES:
        raise InvalidArgument(f"unknown order state: {state!r}")
    row = conn.execute(
        """
        INSERT INTO orders (exchange, currency_pair, action, type, state, price, volume, strategy, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        [
            exchange,
            currency_pair,
            action,
            order_type,
            state,
            Decimal(price),
            Decimal(volume),
            strategy,
            int(time.time() * 1000),
        ],
    ).fetchone()
    return int(row[0])


def set_order_state(conn: DuckDBPyConnection, order_id: int, state: str) -> bool:
    """Move an order to a new state. Returns False if no such order."""
    if state not in ORDER_STATES:
        raise InvalidArgument(f"unknown order state: {state!r}")
    rows = conn.execute("UPDATE orders SET state = ? WHERE id = ? RETURNING id", [state, order_id]).fetchall()
    return bool(rows)


def cancel_active_limit_orders(conn: DuckDBPyConnection, exchange: str, currency_pair: str, action: str) -> list[int]:
    """Cancel every resting limit order for (exchange, pair) on one side. Returns the cancelled ids."""
    if action not in ACTIONS:
        raise InvalidArgument(f"unknown order action: {action!r}")
    rows = conn.execute(
        """
        SELECT id FROM orders
        WHERE exchange = ? AND currency_pair = ? AND action = ? AND state = 'executed' AND type = 'limit'
        ORDER BY id ASC
        """,
        [exchange, currency_pair, action],
    ).fetchall()
    return [order_id for (order_id,) in rows if set_order_state(conn, order_id, "cancelled")]


def get_active_limit_orders(conn: DuckDBPyConnection, exchange: str, currency_pair: str) -> OwnOrderSet:
    """Resting limit orders on exchange for the pair: buys are bids, sells are asks."""
    rows = conn.execute(
        """
        SELECT action, price, volume FROM orders
        WHERE exchange = ? AND currency_pair = ? AND state = 'executed' AND type = 'limit'
        ORDER BY id ASC
        """,
        [exchange, currency_pair],
    ).fetchall()
    sides: dict[str, list[dict[str, Any]]] = {"bids": [], "asks": []}
    for action, price, volume in rows:
        sides["bids" if action == "buy" else "asks"].append({"price": price, "volume": volume})
    return OwnOrderSet.from_mapping(sides)


def list_orders(
    conn: DuckDBPyConnection,
    exchange: str | None = None,
    currency_pair: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    conditions = []
    params: list[Any] = []
    if exchange:
        conditions.append("exchange = ?")
        params.append(exchange)
    if currency_pair:
        conditions.append("currency_pair = ?")
        params.append(currency_pair)
    where = " AND ".join(conditions) if conditions else "1=1"
    params.append(limit)
    rows = conn.execute(
        f"""
        SELECT id, exchange, currency_pair, action, type, state, price, volume, strategy, created_at
        FROM orders WHERE {where} ORDER BY id DESC LIMIT ?
        """,
        params,
    ).fetchall()
    keys = ("id", "exchange", "currency_pair", "action", "type", "state", "price", "volume", "strategy", "created_at")
    return [dict(zip(keys, r)) for r in rows]


class DuckDBOwnOrderSource:
    """Own-order source for the orchestrator, backed by the orders table."""

    def __init__(self, conn: DuckDBPyConnection) -> None:
        self._conn = conn

    def active_limit_orders(self, exchange: str, currency_pair: str) -> OwnOrderSet:
        cur = self._conn.cursor()
        try:
            return get_active_limit_orders(cur, exchange, currency_pair)
        finally:
            cur.close()
