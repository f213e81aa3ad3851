"""Market taking: cross both venues immediately when the stranger spread beats the cutoff rate."""

from __future__ import annotations

import structlog

from bookarb.strategies.base import OrderIntent, OrderSink, Strategy, StrategyRequest

log = structlog.get_logger(__name__)


class MarketTakingStrategy(Strategy):
    """
    Buy on the cheaper venue and sell on the dearer one, at most request.volume.
    The quote decides direction and profitability. Each leg is priced from the side it trades against.
    """

    name = "market_taking"

    def __init__(self, sink: OrderSink) -> None:
        self.sink = sink

    def attempt(self, request: StrategyRequest) -> bool:
        quote = request.quote
        if quote is None:
            return False
        if quote.rate <= request.minimum_profit_rate:
            log.debug(
                "market_taking_spread_too_thin",
                currency_pair=request.currency_pair,
                rate=str(quote.rate),
                cutoff=str(request.minimum_profit_rate),
            )
            return False

        if quote.local_is_cheaper:
            buy_venue, buy_book = request.exchange, request.orderbook
            sell_venue, sell_book = request.counterpart_exchange, request.counterpart_orderbook
        else:
            buy_venue, buy_book = request.counterpart_exchange, request.counterpart_orderbook
            sell_venue, sell_book = request.exchange, request.orderbook

        # Market orders fill against the opposite side: buys lift asks, sells hit bids
        buy_level = buy_book.best_stranger_ask()
        sell_level = sell_book.best_stranger_bid()
        if buy_level is None or sell_level is None or sell_level.price <= buy_level.price:
            log.debug(
                "market_taking_no_cross",
                currency_pair=request.currency_pair,
                buy_ask=str(buy_level.price) if buy_level else None,
                sell_bid=str(sell_level.price) if sell_level else None,
            )
            return False
        volume = min(request.volume, buy_level.volume, sell_level.volume)

        legs = (("buy", buy_venue, buy_level.price), ("sell", sell_venue, sell_level.price))
        for action, venue, price in legs:
            intent = OrderIntent(
                exchange=venue,
                currency_pair=request.currency_pair,
                action=action,
                order_type="market",
                price=price,
                volume=volume,
                strategy=self.name,
            )
            if not self.sink.submit(intent):
                log.warning("market_taking_leg_rejected", action=action, exchange=venue)
                return False
        log.info(
            "market_taking_executed",
            currency_pair=request.currency_pair,
            spread=str(quote.spread),
            rate=str(quote.rate),
            buy_price=str(buy_level.price),
            sell_price=str(sell_level.price),
            volume=str(volume),
        )
        return True
