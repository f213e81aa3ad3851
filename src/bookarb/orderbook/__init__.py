"""Order book mirror, stranger liquidity view and per-pair registry."""

from bookarb.orderbook.engine import Ladder, OrderBook
from bookarb.orderbook.registry import OrderBookRegistry
from bookarb.orderbook.stranger import best_stranger_level, stranger_levels

__all__ = ["Ladder", "OrderBook", "OrderBookRegistry", "stranger_levels", "best_stranger_level"]
