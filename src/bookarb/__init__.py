"""bookarb - order book mirror and cross-venue arbitrage decisions."""

__version__ = "0.1.0"
