"""Connection lifecycle - connect, subscribe, spawn the read path, tear down exactly once."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from cbfeed.ingestion.base import Connector, DuplexChannel, FrameSource
from cbfeed.ingestion.coinbase.ws import connect_websocket
from cbfeed.ingestion.errors import ConnectError, SubscribeError

if TYPE_CHECKING:
    from cbfeed.config.settings import ListenerSettings

log = structlog.get_logger(__name__)

Reader = Callable[[FrameSource, asyncio.Event], Awaitable[None]]


class ConnectionState(str, Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    READING = "reading"
    CLOSING = "closing"
    CLOSED = "closed"


class ConnectionManager:
    """Owns the duplex channel. Only this class changes the connection state or closes the channel."""

    def __init__(self, settings: ListenerSettings, connector: Connector | None = None) -> None:
        self.settings = settings
        self._connector = connector or connect_websocket
        self._state = ConnectionState.UNCONNECTED
        self._channel: DuplexChannel | None = None
        self._stop: asyncio.Event | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._lifecycle_lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reader_running(self) -> bool:
        return self._reader_task is not None and not self._reader_task.done()

    async def start(self, reader: Reader) -> None:
        """
        Connect, send the subscription message, then run reader(channel, stop_event) as a task.
        Raises ConnectError / SubscribeError; nothing is retried. A stop() issued meanwhile
        waits for this to finish and then tears the connection down.
        """
        async with self._lifecycle_lock:
            if self._state is not ConnectionState.UNCONNECTED:
                raise RuntimeError(f"cannot start from state {self._state.value}")
            url = self.settings.service_address
            log.info("ws_connecting", url=url)
            log.info("ws_subscribe", payload=self.settings.on_connect_message)
            try:
                channel = await self._connector(url)
            except Exception as e:
                log.error("ws_connect_failed", url=url, error=str(e))
                raise ConnectError(f"dial {url}: {e}") from e
            self._channel = channel
            self._state = ConnectionState.CONNECTED
            log.info("ws_connected", url=url)

            try:
                await channel.send(self.settings.on_connect_message)
            except Exception as e:
                log.error("ws_subscribe_failed", error=str(e))
                await self._close_channel()
                self._state = ConnectionState.CLOSED
                raise SubscribeError(f"subscribe: {e}") from e
            self._state = ConnectionState.SUBSCRIBED
            log.info("ws_subscribed")

            self._stop = asyncio.Event()
            self._reader_task = asyncio.create_task(reader(channel, self._stop))
            self._state = ConnectionState.READING

    async def wait(self) -> None:
        """Block until the read path has exited (channel error or stop)."""
        if self._reader_task is not None:
            await asyncio.wait({self._reader_task})

    async def stop(self) -> None:
        """Signal the reader, wait for it and its work to finish, close the channel. Idempotent."""
        async with self._lifecycle_lock:
            if self._state in (ConnectionState.UNCONNECTED, ConnectionState.CLOSED):
                return
            self._state = ConnectionState.CLOSING
            if self._stop is not None:
                self._stop.set()
            task = self._reader_task
            if task is not None:
                await asyncio.wait({task})
                if not task.cancelled() and task.exception() is not None:
                    log.error("ws_reader_failed", error=str(task.exception()))
            await self._close_channel()
            self._state = ConnectionState.CLOSED
            log.info("ws_closed")

    async def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            await channel.close()
        except Exception as e:
            log.warning("ws_close_error", error=str(e))
