"""
Duplex text-message transport for the feed.

The feed client only depends on the Transport protocol, so tests can script
connect/send/receive outcomes without a network. AiohttpTransport is the
production implementation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from ..errors import TransportError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """One connection's worth of text messages."""

    async def connect(self) -> None:
        """Open the connection. Raises TransportError."""

    async def send(self, message: str) -> None:
        """Send one text message. Raises TransportError."""

    async def receive(self) -> str | None:
        """Next text message, or None when the stream has ended. Raises TransportError."""

    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""


class AiohttpTransport:
    """
    WebSocket transport on top of aiohttp.

    Each instance owns its own ClientSession for the lifetime of one
    connection; the feed client creates a fresh transport per attempt.
    """

    def __init__(self, url: str, heartbeat_sec: float | None = 20.0) -> None:
        self.url = url
        self.heartbeat_sec = heartbeat_sec
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    async def connect(self) -> None:
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=self.heartbeat_sec)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            await self.close()
            raise TransportError(f"connect to {self.url} failed: {e!r}") from e

    async def send(self, message: str) -> None:
        if self._ws is None or self._ws.closed:
            raise TransportError("send on a closed connection")
        try:
            await self._ws.send_str(message)
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
            raise TransportError(f"send failed: {e!r}") from e

    async def receive(self) -> str | None:
        if self._ws is None:
            raise TransportError("receive before connect")

        try:
            msg = await self._ws.receive()
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"receive failed: {e!r}") from e

        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            return msg.data.decode('utf-8', errors='replace')
        if msg.type == aiohttp.WSMsgType.ERROR:
            raise TransportError(f"stream error: {self._ws.exception()!r}")

        # CLOSE / CLOSING / CLOSED
        logger.debug("WebSocket closed by peer (type=%s, code=%s)", msg.type, self._ws.close_code)
        return None

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        session, self._session = self._session, None
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except (aiohttp.ClientError, OSError) as e:
                logger.debug("Ignoring error while closing WebSocket: %r", e)
        if session is not None and not session.closed:
            await session.close()
