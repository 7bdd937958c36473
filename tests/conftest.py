"""Shared fakes: in-memory duplex channel and a recording sink."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
import structlog

from cbfeed.config.settings import ListenerSettings

TICKER = {
    "type": "ticker",
    "sequence": 12238444095,
    "product_id": "ETH-USD",
    "price": "731.99",
    "open_24h": "684.11",
    "volume_24h": "395831.08785795",
    "low_24h": "680.9",
    "high_24h": "747",
    "volume_30d": "6144317.83380943",
    "best_bid": "731.83",
    "best_ask": "731.99",
    "side": "buy",
    "time": "2020-12-28T23:54:32.051347Z",
    "trade_id": 71476932,
    "last_size": "0.24169456",
}

L2UPDATE = {
    "type": "l2update",
    "product_id": "ETH-USD",
    "changes": [["sell", "731.99", "1.24025886"]],
    "time": "2020-12-28T23:54:32.051347Z",
}


class FakeChannel:
    """Frames pushed into inbox come out of recv(); an exception instance is raised instead."""

    def __init__(self, frames: list[Any] | None = None, fail_send: bool = False) -> None:
        self.inbox: asyncio.Queue[Any] = asyncio.Queue()
        for f in frames or []:
            self.inbox.put_nowait(f)
        self.fail_send = fail_send
        self.sent: list[str] = []
        self.close_count = 0

    def push(self, frame: Any) -> None:
        self.inbox.put_nowait(frame)

    async def recv(self) -> str | bytes:
        item = await self.inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, message: str) -> None:
        if self.fail_send:
            raise ConnectionResetError("connection reset by peer")
        self.sent.append(message)

    async def close(self) -> None:
        self.close_count += 1


class RecordingSink:
    def __init__(self) -> None:
        self.records: list[Any] = []
        self.errors: list[Exception] = []

    def add_record(self, metric: Any) -> None:
        self.records.append(metric)

    def add_error(self, err: Exception) -> None:
        self.errors.append(err)


def frame(payload: dict[str, Any]) -> str:
    return json.dumps(payload)


def connector_for(channel: FakeChannel):
    """Connector returning channel and remembering the URL it was asked for."""
    urls: list[str] = []

    async def connect(url: str) -> FakeChannel:
        urls.append(url)
        return channel

    connect.urls = urls  # type: ignore[attr-defined]
    return connect


async def wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def listener_settings() -> ListenerSettings:
    return ListenerSettings(
        service_address="wss://feed.test",
        on_connect_message='{"type": "subscribe"}',
        workers=1,
        drain_timeout_sec=1.0,
    )


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
