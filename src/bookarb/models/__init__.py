"""Canonical schema (Pydantic) - order book levels, own orders, strategy params."""

from bookarb.models.orderbook import BookRecord, OwnOrder, OwnOrderSet, PriceLevel, Side
from bookarb.models.strategy import MarketMakingParams, MarketTakingParams, PairStrategyConfig

__all__ = [
    "Side",
    "PriceLevel",
    "OwnOrder",
    "OwnOrderSet",
    "BookRecord",
    "MarketTakingParams",
    "MarketMakingParams",
    "PairStrategyConfig",
]
