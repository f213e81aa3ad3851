"""Strategy contract - what the orchestrator hands a strategy and what it gets back."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from bookarb.models.orderbook import Side

if TYPE_CHECKING:
    from bookarb.orderbook.engine import OrderBook


@dataclass(frozen=True)
class SpreadQuote:
    """Best stranger prices on the same side of both books."""

    side: Side
    local_price: Decimal
    local_volume: Decimal
    counterpart_price: Decimal
    counterpart_volume: Decimal

    @property
    def spread(self) -> Decimal:
        return abs(self.local_price - self.counterpart_price)

    @property
    def rate(self) -> Decimal:
        """Spread relative to the lower of the two prices."""
        return self.spread / min(self.local_price, self.counterpart_price)

    @property
    def local_is_cheaper(self) -> bool:
        return self.local_price < self.counterpart_price

    @classmethod
    def between(cls, side: Side | str, orderbook: OrderBook, counterpart_orderbook: OrderBook) -> SpreadQuote | None:
        side = Side.parse(side)
        local = orderbook.best_stranger(side)
        remote = counterpart_orderbook.best_stranger(side)
        if local is None or remote is None:
            return None
        return cls(
            side=side,
            local_price=local.price,
            local_volume=local.volume,
            counterpart_price=remote.price,
            counterpart_volume=remote.volume,
        )


@dataclass(frozen=True)
class StrategyRequest:
    """Inputs for one strategy attempt."""

    side: Side
    volume: Decimal
    minimum_profit_rate: Decimal
    currency_pair: str
    exchange: str
    counterpart_exchange: str
    orderbook: OrderBook
    counterpart_orderbook: OrderBook
    quote: SpreadQuote | None = None
    # market making only
    bid_increment: Decimal | None = None
    ask_decrement: Decimal | None = None


@dataclass(frozen=True)
class OrderIntent:
    """An order a strategy wants placed."""

    exchange: str
    currency_pair: str
    action: str  # buy | sell
    order_type: str  # market | limit
    price: Decimal
    volume: Decimal
    strategy: str


class OrderSink(Protocol):
    """Where strategies send orders. submit returns True if the order was accepted."""

    def submit(self, intent: OrderIntent) -> bool: ...

    def cancel_resting(self, exchange: str, currency_pair: str, action: str) -> int:
        """Cancel our resting limit orders for one side of (exchange, pair). Returns how many were cancelled."""
        ...


class Strategy(ABC):
    """Base for execution strategies. Only the boolean result of attempt() drives the orchestrator."""

    name: str = ""

    @abstractmethod
    def attempt(self, request: StrategyRequest) -> bool:
        """Try to act on the two books. Return True if an order was executed/placed."""
        ...
