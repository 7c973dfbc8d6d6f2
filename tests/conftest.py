"""Shared test fixtures and fakes for heatmap_viewer tests."""

from __future__ import annotations

import orjson
import pytest

from heatmap_viewer.errors import TransportError
from heatmap_viewer.types import BookUpdate, PriceLevel


def book_message(levels, time=1000, coin="@107", channel="l2Book") -> str:
    """Serialized l2Book message. `levels` is [[(px, sz), ...], ...] with strings or numbers."""
    groups = [
        [{"px": str(px), "sz": str(sz), "n": 1} for px, sz in group]
        for group in levels
    ]
    message = {"data": {"coin": coin, "time": time, "levels": groups}}
    if channel is not None:
        message["channel"] = channel
    return orjson.dumps(message).decode()


def book_update(buy=(), sell=(), timestamp_ms=1000, coin="@107") -> BookUpdate:
    """BookUpdate from (price, size) pairs."""
    return BookUpdate(
        coin,
        tuple(PriceLevel(p, s, 1) for p, s in buy),
        tuple(PriceLevel(p, s, 1) for p, s in sell),
        timestamp_ms,
    )


class FakeTransport:
    """
    Scripted transport.

    `messages` items are returned by receive() in order; an Exception item is
    raised instead. When the script runs out, receive() reports end of stream.
    """

    def __init__(self, connect_error=None, send_error=None, messages=()):
        self.connect_error = connect_error
        self.send_error = send_error
        self.messages = list(messages)
        self.connected = False
        self.closed = False
        self.sent: list[str] = []

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def send(self, message: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)

    async def receive(self) -> str | None:
        if not self.messages:
            return None
        item = self.messages.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class ScriptedTransports:
    """
    Transport factory handing out FakeTransports in order.

    Once the script is exhausted it stops the attached client and returns a
    transport that cannot connect, so FeedClient.run() returns.
    """

    def __init__(self, transports):
        self.transports = list(transports)
        self.created: list[FakeTransport] = []
        self.client = None

    def __call__(self) -> FakeTransport:
        if self.transports:
            transport = self.transports.pop(0)
        else:
            if self.client is not None:
                self.client.stop()
            transport = FakeTransport(connect_error=TransportError("script exhausted"))
        self.created.append(transport)
        return transport


class RecordingSleep:
    """Injectable sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingSink:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def emit(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))


class FailingSink:
    def __init__(self, fail_times: int = 1):
        self.fail_times = fail_times
        self.events: list[tuple[str, dict]] = []

    def emit(self, event: str, payload: dict) -> None:
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("sink rejected event")
        self.events.append((event, payload))


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def sink():
    return RecordingSink()
