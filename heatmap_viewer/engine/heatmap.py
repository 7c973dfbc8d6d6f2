"""
Order book heatmap renderer.

Turns the history window into one SVG document:
- x axis: time, the last `window_ms` ending at the newest snapshot
- y axis: price, max_price at the top
- each level is a thin bar; red for sells, green for buys, opacity = size / max_size
- white marker at each snapshot's mid price
- price legend in the right margin

Pure function of the history: no clock, no randomness, so the same window
always produces byte-identical output.

Performance notes:
- min/max scanning goes through numpy; per-side min/max prices are O(1)
  peeks on the sorted maps
- One SVG element per level per snapshot; a 5 minute window at 1 update/s
  with 2x20 levels is ~12k rects
"""

from __future__ import annotations

import logging
import math
from itertools import chain
from typing import Callable, NamedTuple, Sequence

import numpy as np
import svgwrite

from ..config import HeatmapConfig
from ..types import HistoryEntry

logger = logging.getLogger(__name__)

# Colors
BACKGROUND_COLOR = "#000000"
SELL_COLOR = "rgb(255,0,0)"
BUY_COLOR = "rgb(0,255,0)"
MID_COLOR = "rgb(255,255,255)"
MID_OPACITY = 0.8
LEGEND_COLOR = "white"
LEGEND_FONT = "Arial"
LEGEND_FONT_SIZE = 14

TICK_LENGTH = 10
LABEL_OFFSET_X = 20
LABEL_OFFSET_Y = 5


class WindowStats(NamedTuple):
    """Scale of the data across the whole window."""
    max_size: float
    min_price: float
    max_price: float

    @property
    def price_range(self) -> float:
        return self.max_price - self.min_price


def scan_window(history: Sequence[HistoryEntry]) -> WindowStats | None:
    """
    Max size and price bounds over every level of every snapshot, both sides.

    Returns None when there is nothing to draw (no levels, or max size <= 0).
    """
    sizes = np.fromiter(
        chain.from_iterable(chain(entry.buy.sizes(), entry.sell.sizes()) for entry in history),
        dtype=np.float64,
    )
    if sizes.size == 0:
        return None

    max_size = float(sizes.max())
    if max_size <= 0:
        return None

    lows = [p for entry in history for p in (entry.buy.min_price, entry.sell.min_price) if p is not None]
    highs = [p for entry in history for p in (entry.buy.max_price, entry.sell.max_price) if p is not None]

    return WindowStats(max_size, float(np.min(lows)), float(np.max(highs)))


class HeatmapRenderer:
    """
    Renders a history window as an SVG heatmap.

    Stateless apart from its configuration; safe to call from a worker thread.
    """

    def __init__(self, config: HeatmapConfig | None = None) -> None:
        self.config = config or HeatmapConfig()

    def _new_document(self) -> svgwrite.Drawing:
        cfg = self.config
        dwg = svgwrite.Drawing(size=("100%", "100%"), debug=False)
        dwg['viewBox'] = f"0 0 {cfg.width} {cfg.height}"
        dwg.fit(horiz="center", vert="middle", scale="meet")

        # Heatmap area only; the legend margin stays transparent
        dwg.add(dwg.rect(
            insert=(0, 0),
            size=(cfg.plot_width, "100%"),
            fill=BACKGROUND_COLOR,
        ))
        return dwg

    def _price_axis(self, stats: WindowStats) -> Callable[[float], int]:
        """Price -> y mapping. Price increases upward."""
        height = self.config.height
        min_price = stats.min_price
        price_range = stats.price_range

        if price_range <= 0:
            # Single price in the whole window: park everything mid-canvas
            center = height // 2
            return lambda price: center

        return lambda price: height - int((price - min_price) / price_range * height)

    def _time_to_x(self, timestamp_ms: int, window_start_ms: int) -> int:
        cfg = self.config
        return int((timestamp_ms - window_start_ms) / cfg.window_ms * cfg.plot_width)

    def bar_width(self, history_length: int) -> int:
        """Width of one snapshot column; +1 so rounding never leaves gaps."""
        return math.ceil(self.config.plot_width / history_length) + 1

    @staticmethod
    def alpha(size: float, max_size: float) -> float:
        """Level opacity, clamped to 1.0."""
        return min(size / max_size, 1.0)

    def render(self, history: Sequence[HistoryEntry]) -> str:
        """
        Render `history` (oldest first) to an SVG string.

        HOT PATH - called once per accepted update.
        """
        cfg = self.config
        dwg = self._new_document()

        stats = scan_window(history)
        if stats is None:
            logger.debug("No data available for heatmap")
            return dwg.tostring()

        logger.debug(
            "Generating heatmap: %d snapshots, max_size=%s, price %s..%s",
            len(history), stats.max_size, stats.min_price, stats.max_price,
        )

        to_y = self._price_axis(stats)
        window_start_ms = history[-1].timestamp_ms - cfg.window_ms
        bar_width = self.bar_width(len(history))
        level_height = cfg.level_height

        for entry in history:
            x = self._time_to_x(entry.timestamp_ms, window_start_ms)

            for price, size in entry.sell.items_descending():
                dwg.add(dwg.rect(
                    insert=(x, to_y(price)),
                    size=(bar_width, level_height),
                    fill=SELL_COLOR,
                    fill_opacity=self.alpha(size, stats.max_size),
                ))

            for price, size in entry.buy.items():
                dwg.add(dwg.rect(
                    insert=(x, to_y(price)),
                    size=(bar_width, level_height),
                    fill=BUY_COLOR,
                    fill_opacity=self.alpha(size, stats.max_size),
                ))

            # Empty side counts as 0.0, which drags the mid toward zero
            mid = (entry.buy.best_price(highest=True) + entry.sell.best_price(highest=False)) / 2.0

            dwg.add(dwg.rect(
                insert=(x, to_y(mid)),
                size=(bar_width, 1),
                fill=MID_COLOR,
                fill_opacity=MID_OPACITY,
            ))

        dwg.add(self._price_legend(dwg, stats))
        return dwg.tostring()

    def _price_legend(self, dwg: svgwrite.Drawing, stats: WindowStats) -> svgwrite.container.Group:
        """Evenly spaced price ticks in the right margin."""
        cfg = self.config
        steps = cfg.price_steps
        group = dwg.g(font_family=LEGEND_FONT, font_size=LEGEND_FONT_SIZE, fill=LEGEND_COLOR)

        for i in range(steps + 1):
            price = stats.min_price + stats.price_range * i / steps
            y = int(cfg.height * (1.0 - i / steps))

            group.add(dwg.text(
                f"{price:.{cfg.label_decimals}f}",
                insert=(cfg.plot_width + LABEL_OFFSET_X, y + LABEL_OFFSET_Y),
                text_anchor="start",
            ))
            group.add(dwg.line(
                start=(cfg.plot_width, y),
                end=(cfg.plot_width + TICK_LENGTH, y),
                stroke=LEGEND_COLOR,
                stroke_width=1,
            ))

        return group
