"""Tests for FeedClient: subscription, decoding, reconnect backoff, shutdown."""

import logging

import orjson
import pytest

from conftest import FakeTransport, ScriptedTransports, book_message
from heatmap_viewer.channel import UpdateChannel
from heatmap_viewer.config import FeedConfig
from heatmap_viewer.datafeed.hyperliquid_client import FeedClient, FeedState
from heatmap_viewer.errors import TransportError


def make_client(transports, sleep, channel=None, config=None):
    channel = channel or UpdateChannel(maxsize=100)
    script = ScriptedTransports(transports)
    client = FeedClient(config or FeedConfig(), channel, transport_factory=script, sleep=sleep)
    script.client = client
    return client, channel, script


def drain(channel):
    items = []
    while channel.qsize():
        items.append(channel._queue.get_nowait())
    return items


class TestSubscription:
    @pytest.mark.asyncio
    async def test_sends_one_subscription_per_connect(self, recording_sleep):
        transport = FakeTransport()
        client, _, _ = make_client([transport], recording_sleep, config=FeedConfig(coin="BTC", n_sig_figs=4))

        await client.run()

        assert len(transport.sent) == 1
        assert orjson.loads(transport.sent[0]) == {
            "method": "subscribe",
            "subscription": {"type": "l2Book", "coin": "BTC", "nSigFigs": 4},
        }


class TestStreaming:
    @pytest.mark.asyncio
    async def test_forwards_decoded_updates(self, recording_sleep):
        transport = FakeTransport(messages=[
            book_message([[("10.0", "5")], [("11.0", "3")]], time=1000),
            book_message([[("10.1", "2")], [("11.1", "4")]], time=2000),
        ])
        client, channel, _ = make_client([transport], recording_sleep)

        await client.run()

        updates = drain(channel)
        assert [u.timestamp_ms for u in updates] == [1000, 2000]
        assert client.updates_forwarded == 2

    @pytest.mark.asyncio
    async def test_malformed_messages_are_discarded(self, recording_sleep):
        transport = FakeTransport(messages=[
            "not json",
            '{"data":{}}',
            book_message([[("10.0", "5")], []], time=1000),
        ])
        client, channel, _ = make_client([transport], recording_sleep)

        await client.run()

        updates = drain(channel)
        assert len(updates) == 1
        assert client.messages_received == 3
        assert client.messages_discarded == 2

    @pytest.mark.asyncio
    async def test_subscription_ack_is_ignored(self, recording_sleep):
        transport = FakeTransport(messages=[
            '{"channel":"subscriptionResponse","data":{"method":"subscribe"}}',
        ])
        client, channel, _ = make_client([transport], recording_sleep)

        await client.run()

        assert drain(channel) == []
        assert client.messages_discarded == 0

    @pytest.mark.asyncio
    async def test_transport_is_closed_after_each_attempt(self, recording_sleep):
        first = FakeTransport(connect_error=TransportError("refused"))
        second = FakeTransport(messages=[TransportError("reset")])
        client, _, script = make_client([first, second], recording_sleep)

        await client.run()

        assert all(t.closed for t in script.created)
        assert client.state is FeedState.DISCONNECTED


class TestReconnectBackoff:
    @pytest.mark.asyncio
    async def test_two_connect_failures_then_success(self, recording_sleep):
        transports = [
            FakeTransport(connect_error=TransportError("refused")),
            FakeTransport(connect_error=TransportError("refused")),
            FakeTransport(messages=[book_message([[("10", "1")], []])]),
        ]
        client, channel, _ = make_client(transports, recording_sleep)

        await client.run()

        # 2s before the second attempt, 4s before the third; the stream end
        # after a successful subscribe restarts from retry 1
        assert recording_sleep.delays == [2.0, 4.0, 2.0]
        assert len(drain(channel)) == 1

    @pytest.mark.asyncio
    async def test_retry_count_resets_after_subscribe(self, recording_sleep):
        observed = []

        class ObservingTransport(FakeTransport):
            async def receive(self):
                observed.append(client.retry_count)
                return await super().receive()

        transports = [
            FakeTransport(connect_error=TransportError("refused")),
            FakeTransport(send_error=TransportError("broken pipe")),
            ObservingTransport(),
        ]
        client, _, _ = make_client(transports, recording_sleep)

        await client.run()

        assert observed == [0]
        assert recording_sleep.delays[:2] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_unexpected_receive_error_reconnects(self, recording_sleep, caplog):
        transports = [
            FakeTransport(messages=[ValueError("unexpected")]),
            FakeTransport(messages=[book_message([[("10", "1")], []])]),
        ]
        client, channel, script = make_client(transports, recording_sleep)

        with caplog.at_level(logging.ERROR, logger="heatmap_viewer.datafeed.hyperliquid_client"):
            await client.run()

        assert recording_sleep.delays[:2] == [2.0, 2.0]
        assert len(drain(channel)) == 1
        assert script.created[0].closed
        assert any(r.exc_info and isinstance(r.exc_info[1], ValueError) for r in caplog.records)

    @pytest.mark.asyncio
    async def test_delay_is_capped(self, recording_sleep):
        transports = [FakeTransport(connect_error=TransportError("refused")) for _ in range(7)]
        client, _, _ = make_client(transports, recording_sleep)

        await client.run()

        assert recording_sleep.delays == [2.0, 4.0, 8.0, 16.0, 30.0, 30.0, 30.0]

    def test_backoff_delay_formula(self):
        client = FeedClient(FeedConfig(backoff_cap_sec=30.0), UpdateChannel())
        expected = {0: 1.0, 1: 2.0, 2: 4.0, 4: 16.0, 5: 30.0, 50: 30.0}
        for retry_count, delay in expected.items():
            client.retry_count = retry_count
            assert client.backoff_delay() == delay


class TestShutdown:
    @pytest.mark.asyncio
    async def test_closed_channel_ends_loop_without_reconnect(self, recording_sleep):
        channel = UpdateChannel(maxsize=100)
        channel.close()
        transport = FakeTransport(messages=[book_message([[("10", "1")], []])])
        client, _, script = make_client([transport], recording_sleep, channel=channel)

        await client.run()

        assert recording_sleep.delays == []
        assert script.created == [transport]
        assert transport.closed

    @pytest.mark.asyncio
    async def test_stop_prevents_reconnect(self, recording_sleep):
        transport = FakeTransport(connect_error=TransportError("refused"))
        client, _, script = make_client([transport], recording_sleep)

        async def connect_then_stop():
            client.stop()
            raise TransportError("refused")

        transport.connect = connect_then_stop

        await client.run()

        assert recording_sleep.delays == []
        assert script.created == [transport]
