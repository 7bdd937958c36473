"""Feed commands: run, sample-config."""

from __future__ import annotations

import asyncio
import signal
import sys

import typer

from cbfeed.config.settings import ConfigError, Settings
from cbfeed.ingestion.coinbase.ws import COINBASE_WS_URL, SAMPLE_SUBSCRIPTION
from cbfeed.ingestion.errors import ConnectError, SubscribeError
from cbfeed.listener import MarketDataListener
from cbfeed.parsers.json_metric import JsonMetricParser
from cbfeed.sinks import ConsoleSink, MetricStoreSink

SAMPLE_CONFIG = f"""\
[feed]
## Websocket URL to connect to
service_address = "{COINBASE_WS_URL}"
## Sent verbatim right after connecting
on_connect_msg = '''
{SAMPLE_SUBSCRIPTION}
'''

[dispatch]
queue_size = 1000
workers = 4
## "block" waits for queue space, "drop" discards and counts the frame
overflow = "block"
drain_timeout_sec = 5.0

[parser]
measurement = "coinbase_marketdata"
name_key = "type"
time_key = "time"
time_format = "iso8601"
tag_keys = ["type", "product_id", "side"]
string_fields = []
query = ""

[storage]
db_path = "data/cbfeed.duckdb"
batch_size = 100

[logging]
level = "INFO"
format = "console"
"""


async def _run_feed(listener: MarketDataListener, duration: float | None) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, stop_event.set)
        loop.add_signal_handler(signal.SIGTERM, stop_event.set)
    await listener.start()
    try:
        waiters = [asyncio.create_task(stop_event.wait()), asyncio.create_task(listener.wait())]
        await asyncio.wait(waiters, timeout=duration, return_when=asyncio.FIRST_COMPLETED)
        for w in waiters:
            w.cancel()
        await asyncio.gather(*waiters, return_exceptions=True)
    finally:
        await listener.stop()


def run(
    ctx: typer.Context,
    output: str = typer.Option("console", "--output", "-o", help="Sink: console (line protocol) or store (DuckDB)"),
    duration: float | None = typer.Option(None, "--duration", "-d", help="Stop after this many seconds"),
) -> None:
    """Connect, subscribe and stream normalized metrics until Ctrl+C, --duration, or a read error."""
    settings: Settings = ctx.obj["settings"]
    try:
        listener_settings = settings.listener_settings()
    except ConfigError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(2)
    if output == "console":
        sink: ConsoleSink | MetricStoreSink = ConsoleSink()
    elif output == "store":
        sink = MetricStoreSink(settings.db_path, batch_size=settings.batch_size)
    else:
        typer.echo(f"Unknown output {output!r} (use console or store)", err=True)
        raise typer.Exit(2)

    listener = MarketDataListener(listener_settings, sink, parser=JsonMetricParser.from_settings(settings))
    try:
        asyncio.run(_run_feed(listener, duration))
    except (ConnectError, SubscribeError) as e:
        typer.echo(f"Failed to start feed: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass
    finally:
        sink.close()
    status = listener.get_status()
    typer.echo(
        f"Stopped. frames={status['frames_received']} records={status['records_forwarded']} "
        f"errors={status['errors_reported']} dropped={status['frames_dropped']}",
        err=True,
    )


def sample_config() -> None:
    """Print a sample TOML configuration."""
    typer.echo(SAMPLE_CONFIG, nl=False)
