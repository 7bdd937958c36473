"""MarketDataListener end-to-end over a fake channel."""

import asyncio

import pytest

from cbfeed.ingestion.connection import ConnectionState
from cbfeed.ingestion.errors import DecodeError, ReadError
from cbfeed.listener import MarketDataListener

from conftest import L2UPDATE, TICKER, FakeChannel, connector_for, frame, wait_until


def test_stream_then_stop_makes_no_late_sink_calls(listener_settings, sink):
    async def scenario():
        channel = FakeChannel(
            [
                frame(TICKER),
                "not json",
                frame({"type": "heartbeat", "sequence": 1}),
                frame(dict(L2UPDATE, changes=[["buy", "1", "1"], ["sell", "2", "2"]])),
            ]
        )
        listener = MarketDataListener(listener_settings, sink, connector=connector_for(channel))
        await listener.start()
        await wait_until(lambda: len(sink.records) == 3)
        await listener.stop()
        seen = (len(sink.records), len(sink.errors))
        channel.push(frame(TICKER))
        channel.push("garbage")
        await asyncio.sleep(0.05)
        assert (len(sink.records), len(sink.errors)) == seen
        await listener.stop()
        return listener, channel

    listener, channel = asyncio.run(scenario())
    assert [m.name for m in sink.records] == ["ticker", "l2update", "l2update"]
    assert [type(e) for e in sink.errors] == [DecodeError]
    assert channel.close_count == 1
    status = listener.get_status()
    assert status["state"] == "closed"
    assert status["frames_received"] == 4
    assert status["records_forwarded"] == 3
    assert status["errors_reported"] == 1


def test_read_error_surfaces_and_listener_stays_stoppable(listener_settings, sink):
    async def scenario():
        channel = FakeChannel([frame(TICKER), ConnectionResetError("gone")])
        listener = MarketDataListener(listener_settings, sink, connector=connector_for(channel))
        await listener.start()
        await asyncio.wait_for(listener.wait(), timeout=1.0)
        assert not listener.running
        assert listener.state is ConnectionState.READING
        await listener.stop()
        return listener

    listener = asyncio.run(scenario())
    assert listener.state is ConnectionState.CLOSED
    assert len(sink.records) == 1
    assert [type(e) for e in sink.errors] == [ReadError]


def test_context_manager(listener_settings, sink):
    async def scenario():
        channel = FakeChannel([frame(TICKER)])
        async with MarketDataListener(listener_settings, sink, connector=connector_for(channel)) as listener:
            await wait_until(lambda: len(sink.records) == 1)
        return listener, channel

    listener, channel = asyncio.run(scenario())
    assert listener.state is ConnectionState.CLOSED
    assert channel.sent == [listener_settings.on_connect_message]
    assert channel.close_count == 1


def test_status_before_start(listener_settings, sink):
    listener = MarketDataListener(listener_settings, sink, connector=connector_for(FakeChannel()))
    status = listener.get_status()
    assert status["state"] == "unconnected"
    assert status["frames_received"] == 0
    assert status["frames_per_sec"] == 0
