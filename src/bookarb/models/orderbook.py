"""Side, PriceLevel, OwnOrder, OwnOrderSet, BookRecord - canonical order book records."""

from __future__ import annotations

import json
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bookarb.errors import InvalidArgument


class Side(str, Enum):
    """One side of a book. Asks are ladder-sorted ascending, bids descending."""

    ASK = "ask"
    BID = "bid"

    @classmethod
    def parse(cls, value: Any) -> Side:
        """Resolve a side tag ('ask', 'asks', 'bid', 'bids', or a Side). Raises InvalidArgument otherwise."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            side = _SIDE_ALIASES.get(value.strip().lower())
            if side is not None:
                return side
        raise InvalidArgument(f"unknown order book side: {value!r}")

    @property
    def key(self) -> str:
        """Plural key used by wire payloads and persisted records."""
        return "asks" if self is Side.ASK else "bids"

    @property
    def descending(self) -> bool:
        return self is Side.BID


_SIDE_ALIASES = {
    "ask": Side.ASK,
    "asks": Side.ASK,
    "bid": Side.BID,
    "bids": Side.BID,
}


class PriceLevel(BaseModel):
    """Single price level. volume == 0 is a removal instruction, never a stored state."""

    model_config = ConfigDict(frozen=True)

    price: Decimal = Field(..., gt=0)
    volume: Decimal = Field(..., ge=0)
    timestamp: Decimal = Field(Decimal(0), ge=0)  # venue event time, fractional epoch seconds allowed

    @classmethod
    def from_triple(cls, raw: Any) -> PriceLevel:
        """Build a level from [price, volume, timestamp] (or a mapping with those keys)."""
        if isinstance(raw, PriceLevel):
            return raw
        try:
            if isinstance(raw, Mapping):
                return cls.model_validate(raw)
            if isinstance(raw, (list, tuple)) and len(raw) >= 3:
                return cls(price=raw[0], volume=raw[1], timestamp=raw[2])
        except ValidationError as e:
            raise InvalidArgument(f"invalid price level {raw!r}: {e.error_count()} error(s)") from e
        raise InvalidArgument(f"price level must be [price, volume, timestamp], got {raw!r}")

    def to_triple(self) -> list[Any]:
        # Decimals as strings so no precision is lost across the JSON boundary
        return [str(self.price), str(self.volume), str(self.timestamp)]


class OwnOrder(BaseModel):
    """One of our own resting orders, as reported by order management."""

    model_config = ConfigDict(extra="ignore")

    price: Decimal = Field(..., gt=0)
    volume: Decimal = Field(..., ge=0)


class OwnOrderSet(BaseModel):
    """Snapshot of our active resting orders per side."""

    bids: list[OwnOrder] = Field(default_factory=list)
    asks: list[OwnOrder] = Field(default_factory=list)

    @classmethod
    def from_mapping(cls, raw: OwnOrderSet | Mapping[Any, Any] | None) -> OwnOrderSet:
        """Accept {bids: [...], asks: [...]} where entries are mappings with at least price and volume."""
        if raw is None:
            return cls()
        if isinstance(raw, OwnOrderSet):
            return raw
        sides: dict[str, list[Any]] = {"bids": [], "asks": []}
        for key, entries in raw.items():
            sides[Side.parse(key).key] = list(entries or [])
        try:
            return cls.model_validate(sides)
        except ValidationError as e:
            raise InvalidArgument(f"invalid own orders: {e.error_count()} error(s)") from e

    def for_side(self, side: Side | str) -> list[OwnOrder]:
        return self.asks if Side.parse(side) is Side.ASK else self.bids

    @property
    def is_empty(self) -> bool:
        return not self.bids and not self.asks


class BookRecord(BaseModel):
    """Storage / wire boundary form of a book: [price, volume, timestamp] triples per side."""

    asks: list[PriceLevel] = Field(default_factory=list)
    bids: list[PriceLevel] = Field(default_factory=list)
    updated_at: float | None = None  # wall-clock epoch seconds

    @field_validator("asks", "bids", mode="before")
    @classmethod
    def _triples_to_levels(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            return value
        out = []
        for item in value:
            if isinstance(item, (list, tuple)) and len(item) >= 3:
                out.append({"price": item[0], "volume": item[1], "timestamp": item[2]})
            else:
                out.append(item)
        return out

    def levels(self, side: Side | str) -> list[PriceLevel]:
        return self.asks if Side.parse(side) is Side.ASK else self.bids

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "asks": [lev.to_triple() for lev in self.asks],
            "bids": [lev.to_triple() for lev in self.bids],
        }
        if self.updated_at is not None:
            payload["updated_at"] = self.updated_at
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_payload())

    @classmethod
    def from_payload(cls, raw: Any) -> BookRecord:
        if not isinstance(raw, Mapping):
            raise InvalidArgument(f"order book record must be an object, got {type(raw).__name__}")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise InvalidArgument(f"invalid order book record: {e.error_count()} error(s)") from e

    @classmethod
    def from_json(cls, text: str | bytes) -> BookRecord:
        try:
            raw = json.loads(text)
        except (TypeError, json.JSONDecodeError) as e:
            raise InvalidArgument(f"order book record is not valid JSON: {e}") from e
        return cls.from_payload(raw)
