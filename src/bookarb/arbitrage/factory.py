"""Wire an ArbitrageOrchestrator from settings. Connections are owned by the caller."""

from __future__ import annotations

from typing import TYPE_CHECKING

import redis

from bookarb.arbitrage.orchestrator import ArbitrageOrchestrator
from bookarb.cache.redis_cache import OrderBookCache
from bookarb.orderbook.registry import OrderBookRegistry
from bookarb.storage.orderbooks import DuckDBBookStore
from bookarb.storage.orders import DuckDBOwnOrderSource
from bookarb.strategies.market_making import MarketMakingStrategy
from bookarb.strategies.market_taking import MarketTakingStrategy
from bookarb.strategies.sinks import LoggingOrderSink, RecordingOrderSink

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

    from bookarb.config.settings import Settings


def create_orchestrator(
    settings: Settings,
    conn: DuckDBPyConnection,
    redis_client: redis.Redis,
    record_orders: bool = True,
) -> ArbitrageOrchestrator:
    """Registry seeded from DuckDB, counterpart books from redis, orders recorded (or only logged)."""
    store = DuckDBBookStore(conn)
    registry = OrderBookRegistry(loader=store.load, reject_stale_updates=settings.reject_stale_updates)
    sink = RecordingOrderSink(conn) if record_orders else LoggingOrderSink()
    return ArbitrageOrchestrator(
        registry=registry,
        counterpart_source=OrderBookCache(redis_client),
        own_orders=DuckDBOwnOrderSource(conn),
        strategy_config=settings.strategy_config,
        market_taking=MarketTakingStrategy(sink),
        market_making=MarketMakingStrategy(sink),
        freshness_threshold_sec=settings.freshness_threshold_sec,
        book_store=store,
    )
