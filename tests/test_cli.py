"""CLI smoke tests (no network)."""

import asyncio

from typer.testing import CliRunner

from cbfeed.cli.app import app
from cbfeed.cli.feed import _run_feed
from cbfeed.ingestion.connection import ConnectionState
from cbfeed.listener import MarketDataListener

from conftest import TICKER, FakeChannel, RecordingSink, connector_for, frame

runner = CliRunner()


def test_sample_config(tmp_path):
    result = runner.invoke(app, ["-C", str(tmp_path), "sample-config"])
    assert result.exit_code == 0
    assert "[feed]" in result.stdout
    assert "wss://ws-feed.pro.coinbase.com" in result.stdout


def test_run_rejects_invalid_config(tmp_path):
    (tmp_path / "default.toml").write_text('[feed]\nservice_address = ""\n', encoding="utf-8")
    result = runner.invoke(app, ["-C", str(tmp_path), "run"])
    assert result.exit_code == 2


def test_log_stats_on_empty_store(tmp_path):
    db = tmp_path / "m.duckdb"
    (tmp_path / "default.toml").write_text(f'[storage]\ndb_path = "{db.as_posix()}"\n', encoding="utf-8")
    result = runner.invoke(app, ["-C", str(tmp_path), "log", "stats"])
    assert result.exit_code == 0
    assert "Total metrics: 0" in result.stdout


def test_run_feed_ends_on_read_error_and_leaves_no_tasks(listener_settings):
    sink = RecordingSink()
    channel = FakeChannel([frame(TICKER), ConnectionResetError("closed by server")])
    listener = MarketDataListener(listener_settings, sink, connector=connector_for(channel))

    async def scenario():
        await asyncio.wait_for(_run_feed(listener, None), timeout=2.0)
        return asyncio.all_tasks() - {asyncio.current_task()}

    leftover = asyncio.run(scenario())
    assert leftover == set()
    assert listener.state is ConnectionState.CLOSED
    assert len(sink.records) == 1
    assert channel.close_count == 1


def test_run_feed_stops_after_duration(listener_settings):
    sink = RecordingSink()
    channel = FakeChannel()
    listener = MarketDataListener(listener_settings, sink, connector=connector_for(channel))

    async def scenario():
        await asyncio.wait_for(_run_feed(listener, 0.05), timeout=2.0)
        return asyncio.all_tasks() - {asyncio.current_task()}

    assert asyncio.run(scenario()) == set()
    assert listener.state is ConnectionState.CLOSED
    assert sink.errors == []
    assert channel.close_count == 1
