"""Counterpart order book snapshots in redis, keyed orderbooks:<venue>:<currency pair>."""

from __future__ import annotations

from typing import TYPE_CHECKING

import redis
import structlog

from bookarb.errors import InvalidArgument, UpstreamUnavailable
from bookarb.models.orderbook import BookRecord

if TYPE_CHECKING:
    from bookarb.config.settings import Settings
    from bookarb.orderbook.engine import OrderBook

log = structlog.get_logger(__name__)


def create_redis_client(settings: Settings) -> redis.Redis:
    """Build the process-wide client. Its lifecycle belongs to the caller (CLI bootstrap)."""
    return redis.Redis.from_url(
        settings.redis_url,
        socket_timeout=settings.redis_socket_timeout_sec,
        socket_connect_timeout=settings.redis_socket_timeout_sec,
    )


class OrderBookCache:
    """Reads (and, for the owning process, publishes) book snapshots in the shared cache."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @staticmethod
    def key(venue: str, currency_pair: str) -> str:
        return f"orderbooks:{venue}:{currency_pair}"

    def fetch(self, venue: str, currency_pair: str) -> BookRecord:
        """Return the cached snapshot. Any failure raises UpstreamUnavailable; there is no fallback."""
        key = self.key(venue, currency_pair)
        try:
            raw = self._client.get(key)
        except redis.RedisError as e:
            log.warning("orderbook_cache_unavailable", key=key, error=str(e))
            raise UpstreamUnavailable(f"cache read failed for {key}: {e}") from e
        if raw is None:
            log.warning("orderbook_cache_miss", key=key)
            raise UpstreamUnavailable(f"no cached order book at {key}")
        # Value is {"asks": [[price, volume, timestamp], ...], "bids": [...], "updated_at": epoch}.
        # A bare array of triples names no side, so it is unreadable like any other malformed value.
        try:
            return BookRecord.from_json(raw)
        except InvalidArgument as e:
            log.warning("orderbook_cache_corrupt", key=key, error=str(e))
            raise UpstreamUnavailable(f"cached order book at {key} is unreadable: {e}") from e

    def publish(self, book: OrderBook, ttl_sec: int | None = None) -> str:
        """Write the book's current record under its key. Returns the key."""
        key = self.key(book.venue, book.currency_pair)
        try:
            self._client.set(key, book.to_record().to_json(), ex=ttl_sec)
        except redis.RedisError as e:
            raise UpstreamUnavailable(f"cache write failed for {key}: {e}") from e
        log.debug("orderbook_published", key=key, asks=len(book.asks), bids=len(book.bids))
        return key
