"""Capability protocols the core is composed from: channel, sink, parser, connector."""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from cbfeed.models.metric import Metric


class FrameSource(Protocol):
    """Duplex message channel: receive inbound frames, send text frames."""

    async def recv(self) -> str | bytes: ...
    async def send(self, message: str) -> None: ...


class Closer(Protocol):
    async def close(self) -> None: ...


class DuplexChannel(FrameSource, Closer, Protocol):
    """An open connection: a FrameSource that the lifecycle manager can close."""


Connector = Callable[[str], Awaitable[DuplexChannel]]


class RecordSink(Protocol):
    """Downstream consumer. Both calls must not block indefinitely."""

    def add_record(self, metric: Metric) -> None: ...
    def add_error(self, err: Exception) -> None: ...


class Parser(Protocol):
    """Turns one serialized record payload into zero or more metrics."""

    def parse(self, data: bytes) -> list[Metric]: ...
