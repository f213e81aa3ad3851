"""Per currency pair strategy parameters."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class MarketTakingParams(BaseModel):
    """Immediate cross-venue trade: max volume and minimum profit rate (0.004 = 0.4%)."""

    volume: Decimal = Field(..., gt=0)
    cutoff_rate: Decimal = Field(..., ge=0)


class MarketMakingParams(BaseModel):
    """Resting limit order: volume, minimum profit rate and price steps inside the best stranger price."""

    volume: Decimal = Field(..., gt=0)
    cutoff_rate: Decimal = Field(..., ge=0)
    bid_increment: Decimal = Field(Decimal("0"), ge=0)
    ask_decrement: Decimal = Field(Decimal("0"), ge=0)


class PairStrategyConfig(BaseModel):
    """The [strategies."<PAIR>"] config section."""

    market_taking: MarketTakingParams
    market_making: MarketMakingParams
