"""Order book registry - one book and one writer lock per (venue, currency pair)."""

from __future__ import annotations

import threading
import time
from typing import Callable

import structlog

from bookarb.models.orderbook import BookRecord
from bookarb.orderbook.engine import Clock, OrderBook

log = structlog.get_logger(__name__)

BookLoader = Callable[[str, str], "BookRecord | None"]


class OrderBookRegistry:
    """Holds OrderBook per (venue, currency_pair). Books are created on first use and never dropped."""

    def __init__(
        self,
        loader: BookLoader | None = None,
        reject_stale_updates: bool = False,
        clock: Clock = time.time,
    ) -> None:
        self._loader = loader
        self._reject_stale_updates = reject_stale_updates
        self._clock = clock
        self._books: dict[tuple[str, str], OrderBook] = {}
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._creating: dict[tuple[str, str], threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, venue: str, currency_pair: str) -> OrderBook:
        """Return the book for (venue, pair), seeding it from the loader the first time."""
        key = (venue, currency_pair)
        with self._guard:
            book = self._books.get(key)
            if book is not None:
                return book
            creating = self._creating.setdefault(key, threading.Lock())
        # Loader runs under the per-key lock only, never under the registry guard
        with creating:
            with self._guard:
                book = self._books.get(key)
            if book is None:
                book = self._load(venue, currency_pair)
                with self._guard:
                    self._books[key] = book
        return book

    def _load(self, venue: str, currency_pair: str) -> OrderBook:
        book = OrderBook(
            venue,
            currency_pair,
            reject_stale_updates=self._reject_stale_updates,
            clock=self._clock,
        )
        record = self._loader(venue, currency_pair) if self._loader is not None else None
        if record is not None:
            # Re-sorted and deduplicated by fill, stored order is not trusted
            book.fill_entries_with(record)
            log.info(
                "orderbook_restored",
                venue=venue,
                currency_pair=currency_pair,
                asks=len(record.asks),
                bids=len(record.bids),
            )
        return book

    def lock(self, venue: str, currency_pair: str) -> threading.Lock:
        """Writer lock for (venue, pair). Update events for one pair must hold it for the whole cycle."""
        key = (venue, currency_pair)
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def books(self) -> dict[tuple[str, str], OrderBook]:
        with self._guard:
            return dict(self._books)
