"""Arbitrage cycle: load, freshness gate, strategy priority."""

import threading
import time
from decimal import Decimal

import pytest

from bookarb.arbitrage.orchestrator import ArbitrageOrchestrator, Outcome
from bookarb.errors import InvalidArgument, UpstreamUnavailable
from bookarb.models.orderbook import BookRecord, OwnOrderSet, Side
from bookarb.models.strategy import PairStrategyConfig
from bookarb.orderbook.registry import OrderBookRegistry
from bookarb.strategies.base import Strategy

CONFIG = PairStrategyConfig.model_validate(
    {
        "market_taking": {"volume": "1", "cutoff_rate": "0"},
        "market_making": {"volume": "0.5", "cutoff_rate": "0.01", "bid_increment": "0.1", "ask_decrement": "0.2"},
    }
)


class ScriptedStrategy(Strategy):
    def __init__(self, name, result):
        self.name = name
        self.result = result
        self.requests = []

    def attempt(self, request):
        self.requests.append(request)
        return self.result


class FakeCache:
    def __init__(self, records=None, error=None):
        self.records = records or {}
        self.error = error
        self.calls = []

    def fetch(self, venue, currency_pair):
        self.calls.append((venue, currency_pair))
        if self.error is not None:
            raise self.error
        if (venue, currency_pair) not in self.records:
            raise UpstreamUnavailable(f"no cached order book for {venue} {currency_pair}")
        return self.records[(venue, currency_pair)]


class FakeOwnOrders:
    def __init__(self, by_exchange=None):
        self.by_exchange = by_exchange or {}
        self.calls = []

    def active_limit_orders(self, exchange, currency_pair):
        self.calls.append((exchange, currency_pair))
        return OwnOrderSet.from_mapping(self.by_exchange.get(exchange))


class GatedCache(FakeCache):
    """Holds the first fetch for one pair until released."""

    def __init__(self, records, gated_pair):
        super().__init__(records)
        self.gated_pair = gated_pair
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch(self, venue, currency_pair):
        if currency_pair == self.gated_pair and not self.entered.is_set():
            self.entered.set()
            self.release.wait(5)
        return super().fetch(venue, currency_pair)


class FakeStore:
    def __init__(self):
        self.saved = []

    def save(self, book):
        self.saved.append(book.to_record())


def _orchestrator(clock, cache, *, taking=False, making=False, own=None, store=None, threshold=30):
    taking_strategy = ScriptedStrategy("market_taking", taking)
    making_strategy = ScriptedStrategy("market_making", making)
    orchestrator = ArbitrageOrchestrator(
        registry=OrderBookRegistry(clock=clock),
        counterpart_source=cache,
        own_orders=own or FakeOwnOrders(),
        strategy_config=lambda pair: CONFIG,
        market_taking=taking_strategy,
        market_making=making_strategy,
        freshness_threshold_sec=threshold,
        book_store=store,
        clock=clock,
    )
    return orchestrator, taking_strategy, making_strategy


def _message(asks=(), bids=()):
    return {"orderbook": {"asks": [list(a) for a in asks], "bids": [list(b) for b in bids]}}


def _handle(orchestrator, message, side="ask", **kwargs):
    return orchestrator.handle(
        message, side=side, exchange="kraken", counterpart_exchange="bitstamp", currency_pair="BTC-EUR", **kwargs
    )


def test_market_taking_offered_spread_between_books(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord.from_payload({"asks": [[99, 2, 1]], "bids": []})})
    orchestrator, taking, making = _orchestrator(clock, cache, taking=True)

    result = _handle(orchestrator, _message(asks=[(101, 2, 1)]))

    assert result.outcome is Outcome.MARKET_TAKING
    assert result.executed
    assert len(taking.requests) == 1
    request = taking.requests[0]
    assert request.side is Side.ASK
    assert request.quote.local_price == 101
    assert request.quote.counterpart_price == 99
    assert request.quote.spread == 2
    assert request.minimum_profit_rate == 0
    assert request.volume == 1
    assert request.exchange == "kraken"
    assert request.counterpart_exchange == "bitstamp"
    assert request.counterpart_orderbook.best_ask().price == 99
    assert cache.calls == [("bitstamp", "BTC-EUR")]


def test_market_making_skipped_when_taking_executes(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord()})
    orchestrator, taking, making = _orchestrator(clock, cache, taking=True, making=True)
    for ts in range(1, 4):
        _handle(orchestrator, _message(bids=[(100, 1, ts)]), side="bid")
    assert len(taking.requests) == 3
    assert len(making.requests) == 0


def test_market_making_attempted_after_taking_declines(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord.from_payload({"bids": [[101, 1, 1]]})})
    orchestrator, taking, making = _orchestrator(clock, cache, taking=False, making=True)

    result = _handle(orchestrator, _message(bids=[(100, 1, 1)]), side="bid")

    assert result.outcome is Outcome.MARKET_MAKING
    assert len(taking.requests) == 1
    request = making.requests[0]
    assert request.volume == Decimal("0.5")
    assert request.minimum_profit_rate == Decimal("0.01")
    assert request.bid_increment == Decimal("0.1")
    assert request.ask_decrement == Decimal("0.2")
    assert taking.requests[0].bid_increment is None


def test_no_action_when_neither_strategy_executes(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord()})
    orchestrator, taking, making = _orchestrator(clock, cache)
    result = _handle(orchestrator, _message(asks=[(101, 2, 1)]))
    assert result.outcome is Outcome.NO_ACTION
    assert not result.executed
    assert result.quote is None
    assert len(taking.requests) == 1
    assert len(making.requests) == 1


def test_stale_counterpart_stops_before_strategies(clock):
    record = BookRecord.from_payload({"asks": [[99, 2, 1]], "updated_at": clock.now - 31})
    cache = FakeCache({("bitstamp", "BTC-EUR"): record})
    orchestrator, taking, making = _orchestrator(clock, cache, taking=True)

    result = _handle(orchestrator, _message(asks=[(101, 2, 1)]))

    assert result.outcome is Outcome.STALE
    assert taking.requests == []
    assert making.requests == []


def test_counterpart_just_within_threshold_is_fresh(clock):
    record = BookRecord.from_payload({"asks": [[99, 2, 1]], "updated_at": clock.now - 29})
    cache = FakeCache({("bitstamp", "BTC-EUR"): record})
    orchestrator, taking, _ = _orchestrator(clock, cache, taking=True)
    assert _handle(orchestrator, _message(asks=[(101, 2, 1)])).outcome is Outcome.MARKET_TAKING


def test_stale_local_book_stops_before_strategies(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord.from_payload({"asks": [[99, 2, 1]]})})
    orchestrator, taking, _ = _orchestrator(clock, cache, taking=True)
    _handle(orchestrator, _message(asks=[(101, 2, 5)]))
    clock.advance(60)
    # A stale removal does not mutate the book, so the local book stays old
    result = _handle(orchestrator, _message(asks=[(101, 0, 1)]))
    assert result.outcome is Outcome.STALE
    assert len(taking.requests) == 1


def test_empty_local_book_is_outdated(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord.from_payload({"asks": [[99, 2, 1]]})})
    orchestrator, taking, _ = _orchestrator(clock, cache, taking=True)
    assert _handle(orchestrator, _message()).outcome is Outcome.STALE
    assert taking.requests == []


def test_upstream_failure_is_fatal_to_the_cycle(clock):
    cache = FakeCache(error=UpstreamUnavailable("connection refused"))
    orchestrator, taking, making = _orchestrator(clock, cache, taking=True)
    with pytest.raises(UpstreamUnavailable):
        _handle(orchestrator, _message(asks=[(101, 2, 1)]))
    assert taking.requests == []
    assert making.requests == []


def test_invalid_side_raises_before_loading(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord()})
    orchestrator, taking, _ = _orchestrator(clock, cache, taking=True)
    with pytest.raises(InvalidArgument):
        _handle(orchestrator, _message(asks=[(101, 2, 1)]), side="sideways")
    assert orchestrator.registry.books() == {}
    assert cache.calls == []


def test_malformed_message_raises_before_loading(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord()})
    orchestrator, _, _ = _orchestrator(clock, cache)
    with pytest.raises(InvalidArgument):
        _handle(orchestrator, {"orderbook": {"asks": [[101, 2, 1], [-5, 1, 1]]}})
    assert orchestrator.registry.books() == {}


def test_local_book_persists_across_cycles(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord()})
    store = FakeStore()
    orchestrator, _, _ = _orchestrator(clock, cache, store=store)
    _handle(orchestrator, _message(asks=[(101, 2, 1), (103, 1, 1)]))
    result = _handle(orchestrator, _message(asks=[(102, 1, 2), (101, 0, 3)]))
    assert [lev.price for lev in result.orderbook.asks] == [102, 103]
    assert [lev.price for lev in store.saved[-1].asks] == [102, 103]


def test_snapshot_message_replaces_local_book(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord()})
    orchestrator, _, _ = _orchestrator(clock, cache)
    _handle(orchestrator, _message(asks=[(101, 2, 1), (103, 1, 1)]))
    result = _handle(orchestrator, _message(asks=[(105, 1, 2)], bids=[(95, 1, 2)]), snapshot=True)
    assert [lev.price for lev in result.orderbook.asks] == [105]
    assert [lev.price for lev in result.orderbook.bids] == [95]


def test_own_orders_netted_out_of_quote_on_both_venues(clock):
    cache = FakeCache({("bitstamp", "BTC-EUR"): BookRecord.from_payload({"asks": [[98, 1, 1], [99, 2, 1]]})})
    own = FakeOwnOrders(
        {
            "kraken": {"asks": [{"price": 101, "volume": 2}]},
            "bitstamp": {"asks": [{"price": 98, "volume": 1}]},
        }
    )
    orchestrator, taking, _ = _orchestrator(clock, cache, taking=True, own=own)

    _handle(orchestrator, _message(asks=[(101, 2, 1), (102, 1, 1)]))

    quote = taking.requests[0].quote
    assert quote.local_price == 102
    assert quote.counterpart_price == 99
    assert quote.spread == 3


def _in_thread(orchestrator, results, name, message, **kwargs):
    def target():
        results[name] = _handle(orchestrator, message, **kwargs)

    worker = threading.Thread(target=target)
    worker.start()
    return worker


def test_cycles_for_one_pair_are_serialized(clock):
    cache = GatedCache({("bitstamp", "BTC-EUR"): BookRecord.from_payload({"asks": [[99, 2, 1]]})}, "BTC-EUR")
    own = FakeOwnOrders()
    orchestrator, taking, _ = _orchestrator(clock, cache, own=own)
    results = {}
    second = None

    first = _in_thread(orchestrator, results, "first", _message(asks=[(101, 2, 1)]))
    try:
        assert cache.entered.wait(5)
        second = _in_thread(orchestrator, results, "second", _message(asks=[(102, 1, 2)]))
        time.sleep(0.2)
        # second cycle is parked on the writer lock: it has not touched the local book
        assert [lev.price for lev in orchestrator.registry.get("kraken", "BTC-EUR").asks] == [101]
        assert own.calls == [("kraken", "BTC-EUR")]
        assert second.is_alive()
    finally:
        cache.release.set()
        first.join(5)
        if second is not None:
            second.join(5)

    assert results["first"].outcome is Outcome.NO_ACTION
    assert results["second"].outcome is Outcome.NO_ACTION
    assert [lev.price for lev in results["second"].orderbook.asks] == [101, 102]
    assert own.calls == [("kraken", "BTC-EUR"), ("bitstamp", "BTC-EUR")] * 2
    assert [r.quote.local_price for r in taking.requests] == [101, 101]


def test_cycles_for_different_pairs_run_in_parallel(clock):
    cache = GatedCache(
        {
            ("bitstamp", "BTC-EUR"): BookRecord.from_payload({"asks": [[99, 2, 1]]}),
            ("bitstamp", "ETH-EUR"): BookRecord.from_payload({"asks": [[9, 2, 1]]}),
        },
        "BTC-EUR",
    )
    orchestrator, taking, _ = _orchestrator(clock, cache, taking=True)
    results = {}

    btc = _in_thread(orchestrator, results, "btc", _message(asks=[(101, 2, 1)]))
    try:
        assert cache.entered.wait(5)
        eth = orchestrator.handle(
            _message(asks=[(10, 1, 1)]),
            side="ask",
            exchange="kraken",
            counterpart_exchange="bitstamp",
            currency_pair="ETH-EUR",
        )
        assert eth.outcome is Outcome.MARKET_TAKING
        assert btc.is_alive()
    finally:
        cache.release.set()
        btc.join(5)
    assert results["btc"].outcome is Outcome.MARKET_TAKING
    assert [r.currency_pair for r in taking.requests] == ["ETH-EUR", "BTC-EUR"]
