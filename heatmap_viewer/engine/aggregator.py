"""
Aggregation loop: the single consumer of decoded book updates.

For each update:
1. Replace the book wholesale and append it to the history window
2. Render the window to SVG (in a worker thread, awaited)
3. Publish the frame to the event sink

The loop owns OrderBookState outright. Nothing else reads or writes it, and
the loop does not take the next update until the current render returns, so
no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging

from ..channel import UpdateChannel
from ..datafeed.orderbook import OrderBookState
from ..errors import ChannelClosed
from ..types import BookUpdate
from .events import ORDERBOOK_UPDATE_EVENT, EventSink
from .heatmap import HeatmapRenderer

logger = logging.getLogger(__name__)


class AggregationLoop:
    """
    Consumes BookUpdates, keeps the book + history, emits heatmap frames.

    Thread-safety: NOT thread-safe. Run exactly one instance per channel.
    """

    def __init__(
        self,
        channel: UpdateChannel[BookUpdate],
        sink: EventSink,
        state: OrderBookState | None = None,
        renderer: HeatmapRenderer | None = None,
        render_in_thread: bool = True,
    ) -> None:
        self.channel = channel
        self.sink = sink
        self.renderer = renderer or HeatmapRenderer()
        if state is None:
            state = OrderBookState(self.renderer.config.window_ms)
        self.state = state
        self.render_in_thread = render_in_thread

        self.frames_emitted: int = 0
        self.emit_failures: int = 0

    async def run(self) -> None:
        """Process updates until the channel closes or the task is cancelled."""
        logger.info("Starting data processing loop...")
        try:
            while True:
                try:
                    update = await self.channel.receive()
                except ChannelClosed:
                    logger.info("Update channel closed, aggregation loop exiting")
                    return
                await self.process(update)
        finally:
            # Let the producer see that nobody is consuming any more
            self.channel.close()

    async def process(self, update: BookUpdate) -> str | None:
        """
        Apply one update, render, emit.

        Returns the rendered SVG, or None if the update was rejected.
        """
        if not self.state.apply_update(update):
            return None

        history = self.state.history_view()
        if self.render_in_thread:
            svg = await asyncio.to_thread(self.renderer.render, history)
        else:
            svg = self.renderer.render(history)

        self._emit(svg)
        return svg

    def _emit(self, svg: str) -> None:
        try:
            self.sink.emit(ORDERBOOK_UPDATE_EVENT, {"svg": svg})
        except Exception:
            # Sink problems never stop aggregation
            self.emit_failures += 1
            logger.exception("Failed to emit %s event", ORDERBOOK_UPDATE_EVENT)
            return
        self.frames_emitted += 1
