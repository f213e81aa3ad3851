"""Stranger liquidity - a ladder with our own resting orders netted out.

Some venues do not tell us which levels hold our own orders, and other
participants may rest identical orders at the same price. Netting our volume
out of the ladder keeps us from seeing "profit" by crossing our own orders.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from bookarb.models.orderbook import OwnOrder, PriceLevel


def stranger_levels(ladder: Sequence[PriceLevel], own_orders: Iterable[OwnOrder]) -> list[PriceLevel]:
    """Return a new ladder holding only other participants' volume. Inputs are not modified."""
    own_volume: dict[Decimal, Decimal] = {}
    for order in own_orders:
        own_volume[order.price] = own_volume.get(order.price, Decimal(0)) + order.volume
    if not own_volume:
        return list(ladder)

    out: list[PriceLevel] = []
    for level in ladder:
        ours = own_volume.get(level.price)
        if ours is None:
            out.append(level)
            continue
        remaining = level.volume - ours
        if remaining > 0:
            out.append(level.model_copy(update={"volume": remaining}))
    return out


def best_stranger_level(ladder: Sequence[PriceLevel], own_orders: Iterable[OwnOrder]) -> PriceLevel | None:
    levels = stranger_levels(ladder, own_orders)
    return levels[0] if levels else None
