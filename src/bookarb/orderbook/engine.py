"""L2 order book mirror - sorted, deduplicated ladders fed by unordered, possibly stale level updates."""

from __future__ import annotations

import time
from bisect import bisect_left
from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable, Iterable, Iterator, Mapping

import structlog

from bookarb.models.orderbook import BookRecord, OwnOrderSet, PriceLevel, Side
from bookarb.orderbook.stranger import best_stranger_level, stranger_levels

log = structlog.get_logger(__name__)

Clock = Callable[[], float]


class Ladder:
    """One side of a book, best level first. One level per price, never a zero volume."""

    __slots__ = ("side", "_keys", "_levels")

    def __init__(self, side: Side) -> None:
        self.side = side
        # Sort keys kept ascending: price for asks, -price for bids
        self._keys: list[Decimal] = []
        self._levels: list[PriceLevel] = []

    def _key(self, price: Decimal) -> Decimal:
        return -price if self.side.descending else price

    def _index(self, price: Decimal) -> tuple[int, bool]:
        key = self._key(price)
        i = bisect_left(self._keys, key)
        return i, i < len(self._keys) and self._keys[i] == key

    def get(self, price: Decimal) -> PriceLevel | None:
        i, found = self._index(price)
        return self._levels[i] if found else None

    def upsert(self, level: PriceLevel) -> None:
        """Overwrite the level at this price in place, or insert it at its sorted position."""
        i, found = self._index(level.price)
        if found:
            self._levels[i] = level
        else:
            self._keys.insert(i, self._key(level.price))
            self._levels.insert(i, level)

    def remove(self, price: Decimal) -> PriceLevel | None:
        i, found = self._index(price)
        if not found:
            return None
        del self._keys[i]
        return self._levels.pop(i)

    def replace(self, levels: Iterable[PriceLevel]) -> None:
        """Bulk replace. Zero volumes dropped, duplicate prices collapse to the newest timestamp."""
        by_price: dict[Decimal, PriceLevel] = {}
        for lev in levels:
            if lev.volume == 0:
                continue
            current = by_price.get(lev.price)
            if current is None or lev.timestamp >= current.timestamp:
                by_price[lev.price] = lev
        ordered = sorted(by_price.values(), key=lambda lev: lev.price, reverse=self.side.descending)
        self._levels = ordered
        self._keys = [self._key(lev.price) for lev in ordered]

    def first(self) -> PriceLevel | None:
        return self._levels[0] if self._levels else None

    def levels(self) -> list[PriceLevel]:
        return list(self._levels)

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self) -> Iterator[PriceLevel]:
        return iter(list(self._levels))


class OrderBook:
    """In-memory book per (venue, currency pair). Single writer: callers serialize mutations per pair."""

    __slots__ = (
        "venue",
        "currency_pair",
        "reject_stale_updates",
        "last_updated_at",
        "system_entries",
        "_ladders",
        "_clock",
    )

    def __init__(
        self,
        venue: str,
        currency_pair: str,
        *,
        reject_stale_updates: bool = False,
        clock: Clock = time.time,
    ) -> None:
        self.venue = venue
        self.currency_pair = currency_pair
        self.reject_stale_updates = reject_stale_updates
        self.last_updated_at: float | None = None  # wall-clock seconds of last mutation
        self.system_entries = OwnOrderSet()
        self._ladders = {Side.ASK: Ladder(Side.ASK), Side.BID: Ladder(Side.BID)}
        self._clock = clock

    def __repr__(self) -> str:
        return f"OrderBook(venue={self.venue!r}, currency_pair={self.currency_pair!r})"

    def __str__(self) -> str:
        return f"{self.venue} {self.currency_pair} order book"

    def ladder(self, side: Side | str) -> Ladder:
        return self._ladders[Side.parse(side)]

    @property
    def asks(self) -> list[PriceLevel]:
        return self._ladders[Side.ASK].levels()

    @property
    def bids(self) -> list[PriceLevel]:
        return self._ladders[Side.BID].levels()

    def levels(self, side: Side | str) -> list[PriceLevel]:
        return self.ladder(side).levels()

    def _touch(self, at: float | None = None) -> None:
        self.last_updated_at = self._clock() if at is None else at

    def apply_update(self, side: Side | str, entry: PriceLevel | Any) -> bool:
        """
        Apply one level update. Returns True if the book changed.

        volume == 0 removes the stored level, but only when the stored level is
        older than the removal; an out-of-order removal must not undo newer state.
        Otherwise the level at that price is overwritten, or inserted in order.
        """
        side = Side.parse(side)
        level = PriceLevel.from_triple(entry)
        ladder = self._ladders[side]
        stored = ladder.get(level.price)

        if level.volume == 0:
            if stored is None:
                return False
            if stored.timestamp >= level.timestamp:
                log.debug(
                    "orderbook_stale_removal_ignored",
                    book=str(self),
                    side=side.value,
                    price=str(level.price),
                    stored_ts=str(stored.timestamp),
                    removal_ts=str(level.timestamp),
                )
                return False
            ladder.remove(level.price)
        else:
            if stored is not None and self.reject_stale_updates and stored.timestamp > level.timestamp:
                log.debug(
                    "orderbook_stale_update_ignored",
                    book=str(self),
                    side=side.value,
                    price=str(level.price),
                    stored_ts=str(stored.timestamp),
                    update_ts=str(level.timestamp),
                )
                return False
            ladder.upsert(level)
        self._touch()
        return True

    def fill_with(self, side: Side | str, levels: Iterable[PriceLevel | Any], updated_at: float | None = None) -> None:
        """Replace one side from a full snapshot of levels or [price, volume, timestamp] triples."""
        side = Side.parse(side)
        parsed = [PriceLevel.from_triple(lev) for lev in levels]
        self._ladders[side].replace(parsed)
        self._touch(updated_at)

    def fill_entries_with(self, entries: BookRecord | Mapping[str, Any], updated_at: float | None = None) -> None:
        """Replace both sides from {"asks": [...], "bids": [...]}. The record's updated_at is kept if present."""
        record = entries if isinstance(entries, BookRecord) else BookRecord.from_payload(entries)
        self._ladders[Side.ASK].replace(record.asks)
        self._ladders[Side.BID].replace(record.bids)
        self._touch(updated_at if updated_at is not None else record.updated_at)

    def fill_system_entries_with(self, own_orders: OwnOrderSet | Mapping[Any, Any] | None) -> None:
        """Replace the snapshot of our own resting orders. Ladders are untouched."""
        self.system_entries = OwnOrderSet.from_mapping(own_orders)

    def best(self, side: Side | str) -> PriceLevel | None:
        return self.ladder(side).first()

    def best_ask(self) -> PriceLevel | None:
        return self._ladders[Side.ASK].first()

    def best_bid(self) -> PriceLevel | None:
        return self._ladders[Side.BID].first()

    def stranger_levels(self, side: Side | str) -> list[PriceLevel]:
        side = Side.parse(side)
        return stranger_levels(self._ladders[side].levels(), self.system_entries.for_side(side))

    def best_stranger(self, side: Side | str) -> PriceLevel | None:
        side = Side.parse(side)
        return best_stranger_level(self._ladders[side].levels(), self.system_entries.for_side(side))

    def best_stranger_ask(self) -> PriceLevel | None:
        return self.best_stranger(Side.ASK)

    def best_stranger_bid(self) -> PriceLevel | None:
        return self.best_stranger(Side.BID)

    @property
    def is_populated(self) -> bool:
        return self.last_updated_at is not None

    def is_outdated(self, max_age: float | timedelta, now: float | None = None) -> bool:
        """True if never populated, or last mutated more than max_age seconds ago."""
        if self.last_updated_at is None:
            return True
        if isinstance(max_age, timedelta):
            max_age = max_age.total_seconds()
        now = self._clock() if now is None else now
        return now - self.last_updated_at > max_age

    def to_record(self) -> BookRecord:
        return BookRecord(asks=self.asks, bids=self.bids, updated_at=self.last_updated_at)
