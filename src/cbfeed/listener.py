"""MarketDataListener - start/stop entry point wiring connection, dispatch loop, parser and sink."""

from __future__ import annotations

import asyncio
import time
from typing import Any

from cbfeed.config.settings import ListenerSettings, Settings
from cbfeed.ingestion.base import Connector, FrameSource, Parser, RecordSink
from cbfeed.ingestion.connection import ConnectionManager, ConnectionState
from cbfeed.ingestion.dispatch import DispatchLoop
from cbfeed.parsers.json_metric import JsonMetricParser


class MarketDataListener:
    """
    Streams the feed at settings.service_address into sink.

    The sink, the parser and the connector (which yields the channel the manager
    reads from and closes) are injected. start() raises ConnectError/SubscribeError;
    every later failure goes to sink.add_error and the feed keeps running where it can.
    """

    def __init__(
        self,
        settings: ListenerSettings,
        sink: RecordSink,
        parser: Parser | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.settings = settings
        self.sink = sink
        self.parser = parser or JsonMetricParser.from_settings(Settings())
        self._connection = ConnectionManager(settings, connector)
        self._dispatch: DispatchLoop | None = None
        self._start_ts: float | None = None

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def running(self) -> bool:
        return self._connection.reader_running

    async def _read(self, source: FrameSource, stop: asyncio.Event) -> None:
        self._dispatch = DispatchLoop(
            source,
            self.parser,
            self.sink,
            queue_size=self.settings.queue_size,
            workers=self.settings.workers,
            overflow=self.settings.overflow,
            drain_timeout_sec=self.settings.drain_timeout_sec,
        )
        await self._dispatch.run(stop)

    async def start(self) -> None:
        self._start_ts = time.time()
        await self._connection.start(self._read)

    async def wait(self) -> None:
        """Return once the read path has ended on its own or been stopped."""
        await self._connection.wait()

    async def stop(self) -> None:
        """Stop reading, finish or abandon in-flight frames, close the channel. Safe to call twice."""
        await self._connection.stop()

    async def __aenter__(self) -> MarketDataListener:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def get_status(self) -> dict[str, Any]:
        """Return current status: state, frame/record/error counters, elapsed_sec, frames_per_sec."""
        elapsed = (time.time() - self._start_ts) if self._start_ts else 0
        d = self._dispatch
        frames = d.frames_received if d else 0
        return {
            "state": self.state.value,
            "frames_received": frames,
            "frames_dropped": d.frames_dropped if d else 0,
            "frames_abandoned": d.frames_abandoned if d else 0,
            "records_forwarded": d.records_forwarded if d else 0,
            "errors_reported": d.errors_reported if d else 0,
            "elapsed_sec": round(elapsed, 1),
            "frames_per_sec": round(frames / elapsed, 2) if elapsed > 0 else 0,
        }
