"""
Data types for Heatmap Viewer.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- Price level maps live in datafeed/orderbook.py; these are the records that
  travel between the feed, the aggregation loop and the renderer
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from .datafeed.orderbook import PriceLevelMap


class PriceLevel(NamedTuple):
    """Single price level from the L2 book."""
    price: float
    size: float
    orders: int = 0  # Wire field "n": resting order count at this price


class BookUpdate(NamedTuple):
    """
    One decoded l2Book message.

    The feed delivers full snapshots, so buy/sell hold every level of the book
    at `timestamp_ms`, not a diff.
    """
    coin: str
    buy: tuple[PriceLevel, ...]
    sell: tuple[PriceLevel, ...]
    timestamp_ms: int


class HistoryEntry(NamedTuple):
    """Book snapshot retained in the history window."""
    timestamp_ms: int
    buy: PriceLevelMap
    sell: PriceLevelMap
