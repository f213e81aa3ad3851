"""Order sinks: dry-run logging, and recording into the orders table."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from bookarb.storage.orders import cancel_active_limit_orders, record_order
from bookarb.strategies.base import OrderIntent

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)


class LoggingOrderSink:
    """Accepts every order and only logs it."""

    def __init__(self) -> None:
        self.submitted: list[OrderIntent] = []
        self.cancelled: list[tuple[str, str, str]] = []

    def submit(self, intent: OrderIntent) -> bool:
        self.submitted.append(intent)
        log.info(
            "order_submitted",
            exchange=intent.exchange,
            currency_pair=intent.currency_pair,
            action=intent.action,
            order_type=intent.order_type,
            price=str(intent.price),
            volume=str(intent.volume),
            strategy=intent.strategy,
        )
        return True

    def cancel_resting(self, exchange: str, currency_pair: str, action: str) -> int:
        """Dry run: nothing rests, so nothing is cancelled."""
        self.cancelled.append((exchange, currency_pair, action))
        log.info("orders_cancel_requested", exchange=exchange, currency_pair=currency_pair, action=action)
        return 0


class RecordingOrderSink(LoggingOrderSink):
    """Logs and records orders. Recorded limit orders rest as 'executed' and are netted out of later cycles."""

    def __init__(self, conn: DuckDBPyConnection) -> None:
        super().__init__()
        self._conn = conn

    def submit(self, intent: OrderIntent) -> bool:
        cur = self._conn.cursor()
        try:
            order_id = record_order(
                cur,
                exchange=intent.exchange,
                currency_pair=intent.currency_pair,
                action=intent.action,
                order_type=intent.order_type,
                price=intent.price,
                volume=intent.volume,
                # market orders fill immediately; limit orders rest
                state="filled" if intent.order_type == "market" else "executed",
                strategy=intent.strategy,
            )
        finally:
            cur.close()
        log.debug("order_recorded", order_id=order_id)
        return super().submit(intent)

    def cancel_resting(self, exchange: str, currency_pair: str, action: str) -> int:
        cur = self._conn.cursor()
        try:
            cancelled = cancel_active_limit_orders(cur, exchange, currency_pair, action)
        finally:
            cur.close()
        super().cancel_resting(exchange, currency_pair, action)
        log.debug("orders_cancelled", order_ids=cancelled)
        return len(cancelled)
