"""Tests for AiohttpTransport against a local aiohttp WebSocket server."""

import contextlib
import socket

import pytest
from aiohttp import web

from heatmap_viewer.datafeed.transport import AiohttpTransport
from heatmap_viewer.errors import TransportError


@contextlib.asynccontextmanager
async def serve(handler):
    """Run `handler` at ws://127.0.0.1:<port>/ws and yield the URL."""
    app = web.Application()
    app.router.add_get("/ws", handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    try:
        yield f"ws://{host}:{port}/ws"
    finally:
        await runner.cleanup()


async def echo_then_close(request):
    """Echo the first text frame, send a binary frame, then close."""
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    received = await ws.receive_str()
    await ws.send_str(f"echo:{received}")
    await ws.send_bytes("café".encode("utf-8"))
    await ws.close()
    return ws


async def hold_open(request):
    """Keep the connection open until the client goes away."""
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    async for _ in ws:
        pass
    return ws


def unused_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestAiohttpTransport:
    @pytest.mark.asyncio
    async def test_text_binary_and_close_frames(self):
        async with serve(echo_then_close) as url:
            transport = AiohttpTransport(url, heartbeat_sec=None)
            await transport.connect()
            try:
                await transport.send("hi")
                assert await transport.receive() == "echo:hi"
                assert await transport.receive() == "café"
                assert await transport.receive() is None
            finally:
                await transport.close()

    @pytest.mark.asyncio
    async def test_invalid_utf8_binary_is_replaced(self):
        async def send_garbage(request):
            ws = web.WebSocketResponse()
            await ws.prepare(request)
            await ws.send_bytes(b"ok\xff")
            await ws.close()
            return ws

        async with serve(send_garbage) as url:
            transport = AiohttpTransport(url, heartbeat_sec=None)
            await transport.connect()
            try:
                assert await transport.receive() == "ok\ufffd"
            finally:
                await transport.close()

    @pytest.mark.asyncio
    async def test_refused_connect_raises_transport_error(self):
        transport = AiohttpTransport(f"ws://127.0.0.1:{unused_port()}/ws", heartbeat_sec=None)

        with pytest.raises(TransportError):
            await transport.connect()

        # Session already released by the failed connect
        assert transport._session is None
        await transport.close()

    @pytest.mark.asyncio
    async def test_close_twice_is_safe(self):
        async with serve(hold_open) as url:
            transport = AiohttpTransport(url, heartbeat_sec=None)
            await transport.connect()

            await transport.close()
            await transport.close()

            with pytest.raises(TransportError):
                await transport.send("late")

    @pytest.mark.asyncio
    async def test_receive_before_connect_raises(self):
        transport = AiohttpTransport("ws://127.0.0.1:1/ws")
        with pytest.raises(TransportError):
            await transport.receive()
