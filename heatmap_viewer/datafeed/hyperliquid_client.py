"""
Hyperliquid L2 book feed client with reconnect/backoff.

Handles:
1. Connection lifecycle as an explicit state machine
2. l2Book subscription for a single coin
3. Decoding + validation of book messages
4. Exponential backoff between attempts, capped, retried forever

Performance notes:
- Uses orjson for JSON parsing (see messages.py)
- Decoded updates go straight into the bounded channel; the producer
  suspends when the aggregation loop falls behind
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from ..channel import UpdateChannel
from ..config import FeedConfig
from ..errors import ChannelClosed, MessageDecodeError, TransportError
from ..types import BookUpdate
from .messages import decode_book_message, preview, subscription_message
from .transport import AiohttpTransport, Transport

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
TransportFactory = Callable[[], Transport]


class FeedState(Enum):
    """Connection lifecycle state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"


class FeedClient:
    """
    Async client for the Hyperliquid l2Book stream.

    Usage:
        channel = UpdateChannel(maxsize=100)
        client = FeedClient(FeedConfig(coin="@107"), channel)
        await client.run()   # returns only on stop() or when the consumer is gone
    """

    def __init__(
        self,
        config: FeedConfig,
        channel: UpdateChannel[BookUpdate],
        transport_factory: TransportFactory | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config
        self.channel = channel
        self._transport_factory = transport_factory or self._default_transport
        self._sleep = sleep

        self.state = FeedState.DISCONNECTED
        self.retry_count: int = 0
        self._running = False

        # Counters for diagnostics
        self.messages_received: int = 0
        self.messages_discarded: int = 0
        self.updates_forwarded: int = 0

    def _default_transport(self) -> Transport:
        return AiohttpTransport(self.config.url, heartbeat_sec=self.config.heartbeat_sec)

    def _set_state(self, state: FeedState) -> None:
        if state is not self.state:
            logger.debug("Feed state %s -> %s", self.state.value, state.value)
            self.state = state

    def backoff_delay(self) -> float:
        """Seconds to wait before the next attempt for the current retry_count."""
        return float(min(2 ** self.retry_count, self.config.backoff_cap_sec))

    async def run(self) -> None:
        """
        Main run loop. Connects, streams, and reconnects until stopped.

        Pushes BookUpdate records into self.channel.
        """
        self._running = True

        while self._running:
            consumer_alive = await self._run_connection()
            if not consumer_alive:
                logger.info("Update consumer is gone, feed client exiting")
                break
            if not self._running:
                break

            self.retry_count += 1
            delay = self.backoff_delay()
            logger.info("Reconnecting in %.0fs (retry %d)", delay, self.retry_count)
            await self._sleep(delay)

        self._running = False
        self._set_state(FeedState.DISCONNECTED)

    async def _run_connection(self) -> bool:
        """
        One connect -> subscribe -> stream cycle.

        Returns False if the channel was closed, True for any other ending.
        """
        transport = self._transport_factory()
        try:
            self._set_state(FeedState.CONNECTING)
            logger.info(
                "Connecting to %s for %s (sig figs: %d, attempt %d)",
                self.config.url, self.config.coin, self.config.n_sig_figs, self.retry_count + 1,
            )
            await transport.connect()

            self._set_state(FeedState.SUBSCRIBING)
            await transport.send(subscription_message(self.config.coin, self.config.n_sig_figs))
            logger.info("Subscribed to l2Book %s", self.config.coin)

            self.retry_count = 0
            self._set_state(FeedState.STREAMING)
            await self._receive_loop(transport)
            if self._running:
                logger.warning("Feed stream ended")
        except TransportError as e:
            logger.error("Feed %s failed: %s", self.state.value, e)
        except ChannelClosed:
            return False
        except Exception:
            # Anything else from the transport or decoder is a failed attempt too
            logger.exception("Unexpected error in feed %s", self.state.value)
        finally:
            await transport.close()
            self._set_state(FeedState.DISCONNECTED)

        return True

    async def _receive_loop(self, transport: Transport) -> None:
        """
        Forward decoded updates until the stream ends.

        HOT PATH - called for every message.
        """
        while self._running:
            raw = await transport.receive()
            if raw is None:
                return

            self.messages_received += 1
            try:
                update = decode_book_message(raw)
            except MessageDecodeError as e:
                self.messages_discarded += 1
                logger.warning("Failed to parse WebSocket message: %s", e)
                logger.warning("Message content: %s", preview(raw))
                continue

            if update is None:
                continue

            await self.channel.send(update)
            self.updates_forwarded += 1

    def stop(self) -> None:
        """Signal the client to stop after the current step."""
        self._running = False
