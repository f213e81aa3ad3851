"""Venue wire message -> canonical BookRecord."""

from __future__ import annotations

import json
from typing import Any, Mapping

from bookarb.errors import InvalidArgument
from bookarb.models.orderbook import BookRecord


def parse_orderbook_message(payload: Mapping[str, Any] | str | bytes) -> BookRecord:
    """
    Convert {"orderbook": {"asks": [[price, volume, timestamp], ...], "bids": [...]}} to a BookRecord.
    Snapshots and incremental updates share this shape; the caller decides how to apply it.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise InvalidArgument(f"order book message is not valid JSON: {e}") from e
    if not isinstance(payload, Mapping):
        raise InvalidArgument(f"order book message must be an object, got {type(payload).__name__}")
    book = payload.get("orderbook")
    if not isinstance(book, Mapping):
        raise InvalidArgument("order book message has no 'orderbook' object")
    return BookRecord.from_payload(book)
