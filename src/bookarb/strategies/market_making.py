"""Market making: rest (or move) a limit order one step inside the best stranger price, hedged on the counterpart."""

from __future__ import annotations

from decimal import Decimal

import structlog

from bookarb.models.orderbook import Side
from bookarb.strategies.base import OrderIntent, OrderSink, Strategy, StrategyRequest

log = structlog.get_logger(__name__)


class MarketMakingStrategy(Strategy):
    """Quote bid = best stranger bid + bid_increment, ask = best stranger ask - ask_decrement."""

    name = "market_making"

    def __init__(self, sink: OrderSink) -> None:
        self.sink = sink

    def attempt(self, request: StrategyRequest) -> bool:
        side = request.side
        book = request.orderbook
        best = book.best_stranger(side)
        hedge = request.counterpart_orderbook.best_stranger(side)
        if best is None or hedge is None:
            return False

        if side is Side.BID:
            price = best.price + (request.bid_increment or Decimal(0))
            profit = hedge.price - price
            opposite = book.best_stranger(Side.ASK)
            crosses = opposite is not None and price >= opposite.price
            action = "buy"
        else:
            price = best.price - (request.ask_decrement or Decimal(0))
            profit = price - hedge.price
            opposite = book.best_stranger(Side.BID)
            crosses = opposite is not None and price <= opposite.price
            action = "sell"

        if price <= 0 or crosses:
            return False
        rate = profit / price
        if rate < request.minimum_profit_rate:
            log.debug(
                "market_making_unprofitable",
                currency_pair=request.currency_pair,
                side=side.value,
                price=str(price),
                rate=str(rate),
                cutoff=str(request.minimum_profit_rate),
            )
            return False
        resting = book.system_entries.for_side(side)
        if any(order.price == price for order in resting):
            log.debug("market_making_already_quoted", side=side.value, price=str(price))
            return False
        if resting:
            # requote: the new price replaces our earlier orders on this side
            self.sink.cancel_resting(request.exchange, request.currency_pair, action)

        accepted = self.sink.submit(
            OrderIntent(
                exchange=request.exchange,
                currency_pair=request.currency_pair,
                action=action,
                order_type="limit",
                price=price,
                volume=request.volume,
                strategy=self.name,
            )
        )
        if accepted:
            log.info(
                "market_making_placed",
                currency_pair=request.currency_pair,
                side=side.value,
                price=str(price),
                rate=str(rate),
                replaced=len(resting),
            )
        return accepted
