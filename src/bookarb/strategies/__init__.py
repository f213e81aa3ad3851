"""Execution strategies, attempted in priority order by the orchestrator."""

from bookarb.strategies.base import OrderIntent, OrderSink, SpreadQuote, Strategy, StrategyRequest
from bookarb.strategies.market_making import MarketMakingStrategy
from bookarb.strategies.market_taking import MarketTakingStrategy

__all__ = [
    "Strategy",
    "StrategyRequest",
    "SpreadQuote",
    "OrderIntent",
    "OrderSink",
    "MarketTakingStrategy",
    "MarketMakingStrategy",
]
