"""
Local order book and sliding history window for the heatmap.

HOT PATH: apply_update() runs once per feed message (~1-2x per second for
l2Book) and clones both sides into the history.

Performance strategy:
1. SortedDict keeps price keys ordered, so best bid/ask and min/max price
   are O(1) peeks instead of full scans
2. History is a deque ordered by timestamp; purging pops from the left only
3. Maps stored in history are clones, so the renderer can read them without
   any coordination with the next update
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Iterable, Iterator

from sortedcontainers import SortedDict

from ..config import DEFAULT_WINDOW_MS
from ..types import BookUpdate, HistoryEntry, PriceLevel

logger = logging.getLogger(__name__)


class PriceLevelMap:
    """
    Ordered price -> size map for one side of one snapshot.

    Prices ascend. Keys must be finite, non-negative floats; the decoder
    rejects anything else before it reaches here, which keeps the ordering
    well defined.
    """

    __slots__ = ('_levels',)

    def __init__(self, levels: Iterable[PriceLevel] = ()) -> None:
        self._levels: SortedDict = SortedDict()
        for level in levels:
            self[level.price] = level.size

    def __setitem__(self, price: float, size: float) -> None:
        if not math.isfinite(price) or price < 0:
            raise ValueError(f"invalid price key: {price!r}")
        # Later levels at the same price overwrite earlier ones
        self._levels[price] = size

    def __getitem__(self, price: float) -> float:
        return self._levels[price]

    def __contains__(self, price: object) -> bool:
        return price in self._levels

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self) -> Iterator[float]:
        return iter(self._levels)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PriceLevelMap):
            return self._levels == other._levels
        if isinstance(other, dict):
            return dict(self._levels) == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"PriceLevelMap({dict(self._levels)!r})"

    def items(self) -> Iterator[tuple[float, float]]:
        """(price, size) pairs in ascending price order."""
        return iter(self._levels.items())

    def items_descending(self) -> Iterator[tuple[float, float]]:
        """(price, size) pairs in descending price order."""
        levels = self._levels
        return ((price, levels[price]) for price in reversed(levels))

    def sizes(self) -> Iterator[float]:
        return iter(self._levels.values())

    @property
    def min_price(self) -> float | None:
        """Lowest price, or None if the side is empty."""
        return self._levels.peekitem(0)[0] if self._levels else None

    @property
    def max_price(self) -> float | None:
        """Highest price, or None if the side is empty."""
        return self._levels.peekitem(-1)[0] if self._levels else None

    def copy(self) -> PriceLevelMap:
        clone = PriceLevelMap()
        clone._levels = self._levels.copy()
        return clone

    def best_price(self, highest: bool) -> float:
        """
        Top of this side: the highest price for bids, the lowest for asks.

        Returns 0.0 if the side is empty.
        """
        price = self.max_price if highest else self.min_price
        return price if price is not None else 0.0


class OrderBookState:
    """
    Current book plus the history window rendered by the heatmap.

    Thread-safety: NOT thread-safe. Owned by the aggregation loop; the
    renderer only ever sees the tuple returned by history_view().
    """

    __slots__ = ('buy', 'sell', 'window_ms', '_history', '_rejected_count')

    def __init__(self, window_ms: int = DEFAULT_WINDOW_MS) -> None:
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")

        self.window_ms = window_ms

        # Latest full snapshot, replaced wholesale on every update
        self.buy = PriceLevelMap()
        self.sell = PriceLevelMap()

        # Non-decreasing by timestamp
        self._history: deque[HistoryEntry] = deque()

        self._rejected_count: int = 0

    @property
    def best_bid(self) -> float:
        """Best bid price. Returns 0.0 if no bids."""
        return self.buy.best_price(highest=True)

    @property
    def best_ask(self) -> float:
        """Best ask price. Returns 0.0 if no asks."""
        return self.sell.best_price(highest=False)

    @property
    def latest_timestamp(self) -> int | None:
        return self._history[-1].timestamp_ms if self._history else None

    @property
    def rejected_count(self) -> int:
        return self._rejected_count

    def apply_update(self, update: BookUpdate) -> bool:
        """
        Replace the book with `update` and append it to the history.

        HOT PATH - called once per feed message.

        Returns False (and leaves the state untouched) if the update is older
        than the newest history entry.
        """
        latest = self.latest_timestamp
        if latest is not None and update.timestamp_ms < latest:
            self._rejected_count += 1
            logger.warning(
                "Dropping out-of-order update: ts=%d is older than latest ts=%d",
                update.timestamp_ms, latest,
            )
            return False

        # Full snapshot semantics: no merge with the previous book
        self.buy = PriceLevelMap(update.buy)
        self.sell = PriceLevelMap(update.sell)

        self.update_history(update.timestamp_ms)
        return True

    def update_history(self, timestamp_ms: int) -> None:
        """Append clones of the current sides and purge expired entries."""
        self._history.append(HistoryEntry(timestamp_ms, self.buy.copy(), self.sell.copy()))

        cutoff_ms = timestamp_ms - self.window_ms
        while self._history and self._history[0].timestamp_ms <= cutoff_ms:
            self._history.popleft()

    def history_view(self) -> tuple[HistoryEntry, ...]:
        """Read-only view of the history window, oldest first."""
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._history)
