"""Arbitrage cycle: load both books, gate on freshness, then try market taking before market making."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Protocol

import structlog

from bookarb.ingestion.normalize import parse_orderbook_message
from bookarb.models.orderbook import BookRecord, OwnOrderSet, Side
from bookarb.models.strategy import PairStrategyConfig
from bookarb.orderbook.engine import Clock, OrderBook
from bookarb.strategies.base import SpreadQuote, Strategy, StrategyRequest

if TYPE_CHECKING:
    from bookarb.orderbook.registry import OrderBookRegistry

log = structlog.get_logger(__name__)


class CounterpartSource(Protocol):
    """Shared cache read side (see bookarb.cache.redis_cache.OrderBookCache)."""

    def fetch(self, venue: str, currency_pair: str) -> BookRecord: ...


class OwnOrderSource(Protocol):
    """Order management read side (see bookarb.storage.orders.DuckDBOwnOrderSource)."""

    def active_limit_orders(self, exchange: str, currency_pair: str) -> OwnOrderSet: ...


class BookStore(Protocol):
    def save(self, book: OrderBook) -> None: ...


class Outcome(str, Enum):
    STALE = "stale"
    MARKET_TAKING = "market_taking"
    MARKET_MAKING = "market_making"
    NO_ACTION = "no_action"


@dataclass(frozen=True)
class CycleResult:
    """Result of one load -> gate -> strategy pass."""

    outcome: Outcome
    orderbook: OrderBook
    counterpart_orderbook: OrderBook
    quote: SpreadQuote | None = None

    @property
    def executed(self) -> bool:
        return self.outcome in (Outcome.MARKET_TAKING, Outcome.MARKET_MAKING)


class ArbitrageOrchestrator:
    """
    Runs one arbitrage cycle per inbound update event. Collaborators are injected:
    the book registry (local books and per-pair writer locks), the counterpart cache,
    the own-order source, per-pair strategy params and the two strategies.
    """

    def __init__(
        self,
        *,
        registry: OrderBookRegistry,
        counterpart_source: CounterpartSource,
        own_orders: OwnOrderSource,
        strategy_config: Callable[[str], PairStrategyConfig],
        market_taking: Strategy,
        market_making: Strategy,
        freshness_threshold_sec: float,
        book_store: BookStore | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.registry = registry
        self.counterpart_source = counterpart_source
        self.own_orders = own_orders
        self.strategy_config = strategy_config
        self.market_taking = market_taking
        self.market_making = market_making
        self.freshness_threshold_sec = freshness_threshold_sec
        self.book_store = book_store
        self._clock = clock

    def handle(
        self,
        message: Mapping[str, Any] | str | bytes,
        *,
        side: Side | str,
        exchange: str,
        counterpart_exchange: str,
        currency_pair: str,
        snapshot: bool = False,
    ) -> CycleResult:
        """
        Process one update event for (exchange, currency_pair).
        Raises InvalidArgument (bad side/message, before any mutation) and
        UpstreamUnavailable (counterpart fetch failed: no trade this cycle).
        """
        side = Side.parse(side)
        record = parse_orderbook_message(message)
        config = self.strategy_config(currency_pair)
        bound = log.bind(exchange=exchange, counterpart=counterpart_exchange, currency_pair=currency_pair, side=side.value)

        with self.registry.lock(exchange, currency_pair):
            orderbook = self._load_local(exchange, currency_pair, record, snapshot)
            counterpart = self._load_counterpart(counterpart_exchange, currency_pair)

            now = self._clock()
            if orderbook.is_outdated(self.freshness_threshold_sec, now) or counterpart.is_outdated(
                self.freshness_threshold_sec, now
            ):
                bound.info(
                    "orderbooks_outdated",
                    local_updated_at=orderbook.last_updated_at,
                    counterpart_updated_at=counterpart.last_updated_at,
                    threshold_sec=self.freshness_threshold_sec,
                )
                return CycleResult(Outcome.STALE, orderbook, counterpart)

            quote = SpreadQuote.between(side, orderbook, counterpart)
            base = dict(
                side=side,
                currency_pair=currency_pair,
                exchange=exchange,
                counterpart_exchange=counterpart_exchange,
                orderbook=orderbook,
                counterpart_orderbook=counterpart,
                quote=quote,
            )

            taking = config.market_taking
            if self.market_taking.attempt(
                StrategyRequest(volume=taking.volume, minimum_profit_rate=taking.cutoff_rate, **base)
            ):
                bound.info("cycle_executed", strategy=Outcome.MARKET_TAKING.value)
                return CycleResult(Outcome.MARKET_TAKING, orderbook, counterpart, quote)

            making = config.market_making
            if self.market_making.attempt(
                StrategyRequest(
                    volume=making.volume,
                    minimum_profit_rate=making.cutoff_rate,
                    bid_increment=making.bid_increment,
                    ask_decrement=making.ask_decrement,
                    **base,
                )
            ):
                bound.info("cycle_executed", strategy=Outcome.MARKET_MAKING.value)
                return CycleResult(Outcome.MARKET_MAKING, orderbook, counterpart, quote)

            bound.debug("cycle_no_action", spread=str(quote.spread) if quote else None)
            return CycleResult(Outcome.NO_ACTION, orderbook, counterpart, quote)

    def _load_local(self, exchange: str, currency_pair: str, record: BookRecord, snapshot: bool) -> OrderBook:
        orderbook = self.registry.get(exchange, currency_pair)
        if snapshot:
            orderbook.fill_entries_with(record)
        else:
            for side in (Side.ASK, Side.BID):
                for level in record.levels(side):
                    orderbook.apply_update(side, level)
        orderbook.fill_system_entries_with(self.own_orders.active_limit_orders(exchange, currency_pair))
        if self.book_store is not None:
            self.book_store.save(orderbook)
        return orderbook

    def _load_counterpart(self, counterpart_exchange: str, currency_pair: str) -> OrderBook:
        record = self.counterpart_source.fetch(counterpart_exchange, currency_pair)
        counterpart = OrderBook(counterpart_exchange, currency_pair, clock=self._clock)
        counterpart.fill_entries_with(record)
        counterpart.fill_system_entries_with(self.own_orders.active_limit_orders(counterpart_exchange, currency_pair))
        return counterpart
