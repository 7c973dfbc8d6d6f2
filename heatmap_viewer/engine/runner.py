"""
Wires the feed client and the aggregation loop together.

    transport -> FeedClient -> UpdateChannel -> AggregationLoop -> EventSink
"""

from __future__ import annotations

import asyncio
import logging

from ..channel import UpdateChannel
from ..config import AppConfig
from ..datafeed.hyperliquid_client import FeedClient, TransportFactory
from ..datafeed.orderbook import OrderBookState
from ..types import BookUpdate
from .aggregator import AggregationLoop
from .events import EventSink
from .heatmap import HeatmapRenderer

logger = logging.getLogger(__name__)


class HeatmapEngine:
    """
    Owns one feed client + one aggregation loop for a single coin.

    Usage:
        engine = HeatmapEngine(AppConfig(), sink)
        await engine.run()     # until stop() or cancellation
    """

    def __init__(
        self,
        config: AppConfig,
        sink: EventSink,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.config = config
        self.channel: UpdateChannel[BookUpdate] = UpdateChannel(maxsize=config.feed.queue_size)
        self.client = FeedClient(config.feed, self.channel, transport_factory=transport_factory)
        self.aggregator = AggregationLoop(
            self.channel,
            sink,
            state=OrderBookState(config.heatmap.window_ms),
            renderer=HeatmapRenderer(config.heatmap),
        )
        self._feed_task: asyncio.Task | None = None

    async def run(self) -> None:
        """
        Run feed and aggregation concurrently.

        Returns once either side finishes: the other side is stopped, and a
        task that ended with an exception is logged.
        """
        logger.info("Starting heatmap engine for %s", self.config.feed.coin)
        self._feed_task = asyncio.create_task(self.client.run(), name="feed")
        aggregate_task = asyncio.create_task(self.aggregator.run(), name="aggregate")
        tasks = (self._feed_task, aggregate_task)

        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                self._log_failure(task)

            self.stop()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                self._log_failure(task)
        finally:
            for task in tasks:
                task.cancel()

        logger.info("Heatmap engine for %s stopped", self.config.feed.coin)

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s task failed: %r", task.get_name(), exc, exc_info=exc)

    def stop(self) -> None:
        """
        Stop the feed and close the channel so the aggregation loop exits.

        Must be called from the event loop thread (use call_soon_threadsafe).
        """
        self.client.stop()
        self.channel.close()
        # Interrupt a pending backoff sleep or receive
        if self._feed_task is not None:
            self._feed_task.cancel()
