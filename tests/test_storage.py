"""DuckDB persistence of book state and own orders."""

import json
from decimal import Decimal

import pytest

from bookarb.errors import InvalidArgument
from bookarb.orderbook.engine import OrderBook
from bookarb.orderbook.registry import OrderBookRegistry
from bookarb.storage.orderbooks import DuckDBBookStore, list_orderbooks, load_orderbook, save_orderbook
from bookarb.storage.orders import (
    DuckDBOwnOrderSource,
    get_active_limit_orders,
    list_orders,
    record_order,
    set_order_state,
)


def test_save_and_load_orderbook(db, clock):
    book = OrderBook("kraken", "BTC-EUR", clock=clock)
    book.fill_entries_with({"asks": [[101, 1, 1], [102, "0.5", 2]], "bids": [[99, 3, 3]]})
    save_orderbook(db, book)
    book.apply_update("ask", [100, 1, 4])
    save_orderbook(db, book)

    record = load_orderbook(db, "kraken", "BTC-EUR")
    assert [lev.price for lev in record.asks] == [100, 101, 102]
    assert record.updated_at == clock.now
    assert load_orderbook(db, "kraken", "ETH-EUR") is None
    assert list_orderbooks(db) == [{"venue": "kraken", "currency_pair": "BTC-EUR", "updated_at": clock.now}]


def test_registry_restores_and_resorts_stored_book(db, clock):
    # Stored order is not trusted: rows written out of order come back sorted
    db.execute(
        "INSERT INTO orderbooks VALUES (?, ?, ?, ?, ?)",
        ["kraken", "BTC-EUR", json.dumps([[103, 1, 1], [101, 1, 1]]), json.dumps([[97, 1, 1], [99, 1, 1]]), 900.0],
    )
    store = DuckDBBookStore(db)
    registry = OrderBookRegistry(loader=store.load, clock=clock)
    book = registry.get("kraken", "BTC-EUR")
    assert [lev.price for lev in book.asks] == [101, 103]
    assert [lev.price for lev in book.bids] == [99, 97]
    assert book.last_updated_at == 900.0
    assert registry.get("kraken", "BTC-EUR") is book
    fresh = registry.get("bitstamp", "BTC-EUR")
    assert fresh.asks == [] and fresh.last_updated_at is None


def test_active_limit_orders_filter(db):
    record_order(db, exchange="kraken", currency_pair="BTC-EUR", action="buy", order_type="limit", price=Decimal("99.5"), volume=Decimal("0.1"))
    record_order(db, exchange="kraken", currency_pair="BTC-EUR", action="sell", order_type="limit", price=Decimal(101), volume=Decimal(1))
    cancelled = record_order(db, exchange="kraken", currency_pair="BTC-EUR", action="sell", order_type="limit", price=Decimal(102), volume=Decimal(1))
    record_order(db, exchange="kraken", currency_pair="BTC-EUR", action="buy", order_type="market", price=Decimal(100), volume=Decimal(1), state="filled")
    record_order(db, exchange="bitstamp", currency_pair="BTC-EUR", action="buy", order_type="limit", price=Decimal(98), volume=Decimal(1))
    record_order(db, exchange="kraken", currency_pair="ETH-EUR", action="buy", order_type="limit", price=Decimal(3), volume=Decimal(1))
    assert set_order_state(db, cancelled, "cancelled") is True
    assert set_order_state(db, 9999, "cancelled") is False

    own = get_active_limit_orders(db, "kraken", "BTC-EUR")
    assert [(o.price, o.volume) for o in own.bids] == [(Decimal("99.5"), Decimal("0.1"))]
    assert [o.price for o in own.asks] == [101]
    assert DuckDBOwnOrderSource(db).active_limit_orders("bitstamp", "BTC-EUR").bids[0].price == 98
    assert len(list_orders(db, exchange="kraken")) == 5
    assert list_orders(db, limit=1)[0]["currency_pair"] == "ETH-EUR"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"action": "hold", "order_type": "limit"},
        {"action": "buy", "order_type": "stop"},
        {"action": "buy", "order_type": "limit", "state": "open"},
    ],
)
def test_record_order_rejects_unknown_values(db, kwargs):
    with pytest.raises(InvalidArgument):
        record_order(db, exchange="kraken", currency_pair="BTC-EUR", price=Decimal(1), volume=Decimal(1), **kwargs)
