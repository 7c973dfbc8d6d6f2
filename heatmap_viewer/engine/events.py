"""
Event sinks for rendered heatmap frames.

The aggregation loop publishes one "orderbook-update" event per frame with
payload {"svg": <document>}. Where the event ends up is the sink's business.
"""

from __future__ import annotations

import logging
import queue
from typing import Any, NamedTuple, Protocol

logger = logging.getLogger(__name__)

ORDERBOOK_UPDATE_EVENT = "orderbook-update"


class Event(NamedTuple):
    name: str
    payload: dict[str, Any]


class EventSink(Protocol):
    """Anything that can publish a named event with a JSON-like payload."""

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        ...


class QueueEventSink:
    """
    Thread-safe sink for a GUI thread to poll.

    Non-blocking: when the queue is full the oldest frame is dropped so the
    consumer always sees the newest one.
    """

    def __init__(self, maxsize: int = 5) -> None:
        self.queue: queue.Queue[Event] = queue.Queue(maxsize=maxsize)
        self.dropped: int = 0

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        item = Event(event, payload)
        while True:
            try:
                self.queue.put_nowait(item)
                return
            except queue.Full:
                # Drop oldest, retry with the newest
                try:
                    self.queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def latest(self) -> Event | None:
        """Drain the queue and return only the newest event."""
        latest = None
        while True:
            try:
                latest = self.queue.get_nowait()
            except queue.Empty:
                return latest


class LoggingEventSink:
    """Headless sink: logs a one-line summary per frame."""

    def __init__(self) -> None:
        self.frames: int = 0

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        self.frames += 1
        svg = payload.get('svg', '')
        logger.info("%s #%d: %d bytes of SVG", event, self.frames, len(svg))
