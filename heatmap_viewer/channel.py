"""
Bounded update channel between the feed client and the aggregation loop.

asyncio.Queue gives FIFO order and backpressure in both directions but has
no notion of the other side going away. UpdateChannel adds close(): once
closed, send() and receive() raise ChannelClosed, including callers that were
already suspended on a full or empty queue.
"""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

from .errors import ChannelClosed

T = TypeVar('T')

_CLOSED = object()


class UpdateChannel(Generic[T]):
    """Single-producer, single-consumer bounded FIFO with close semantics."""

    def __init__(self, maxsize: int = 100) -> None:
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self.maxsize = maxsize
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def send(self, item: T) -> None:
        """Enqueue `item`, suspending while the channel is full."""
        if self._closed:
            raise ChannelClosed("send on closed channel")
        await self._queue.put(item)
        # The consumer may have closed while we were suspended
        if self._closed:
            raise ChannelClosed("channel closed while sending")

    async def receive(self) -> T:
        """Dequeue the next item, suspending while the channel is empty."""
        if self._closed:
            raise ChannelClosed("receive on closed channel")
        item = await self._queue.get()
        if item is _CLOSED:
            raise ChannelClosed("channel closed")
        return item  # type: ignore[return-value]

    def close(self) -> None:
        """
        Close the channel. Pending items are discarded.

        Draining the queue wakes a producer blocked on a full queue; the
        sentinel wakes a consumer blocked on an empty one.
        """
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)
