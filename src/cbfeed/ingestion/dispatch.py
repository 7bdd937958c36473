"""Dispatch loop - read frames, decode, normalize, parse and forward to the sink via a bounded worker pool."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import structlog
from pydantic import BaseModel

from cbfeed.ingestion.base import FrameSource, Parser, RecordSink
from cbfeed.ingestion.coinbase.normalize import normalize_l2update, normalize_ticker
from cbfeed.ingestion.errors import DecodeError, FeedError, ForwardError, ReadError

log = structlog.get_logger(__name__)

OVERFLOW_POLICIES = ("block", "drop")


def _chain(err: FeedError, cause: BaseException) -> FeedError:
    err.__cause__ = cause
    return err


class DispatchLoop:
    """
    One reader per connection feeding a bounded queue drained by a fixed set of workers.
    Each frame is handled start to finish by a single worker, so records derived from
    one frame reach the sink in order; across frames ordering is best-effort when workers > 1.
    When the queue is full the reader either waits (overflow="block") or drops the frame
    and counts it (overflow="drop").
    """

    def __init__(
        self,
        source: FrameSource,
        parser: Parser,
        sink: RecordSink,
        *,
        queue_size: int = 1000,
        workers: int = 4,
        overflow: str = "block",
        drain_timeout_sec: float = 5.0,
    ) -> None:
        if overflow not in OVERFLOW_POLICIES:
            raise ValueError(f"unknown overflow policy {overflow!r}")
        self._source = source
        self._parser = parser
        self._sink = sink
        self.queue_size = max(1, queue_size)
        self.workers = max(1, workers)
        self.overflow = overflow
        self.drain_timeout_sec = drain_timeout_sec
        self.frames_received = 0
        self.frames_dropped = 0
        self.frames_abandoned = 0
        self.records_forwarded = 0
        self.errors_reported = 0

    def _report(self, err: FeedError) -> None:
        self.errors_reported += 1
        log.warning("feed_error", kind=err.kind, error=str(err))
        self._sink.add_error(err)

    # -- per-frame work --------------------------------------------------

    def process_frame(self, raw: str | bytes) -> None:
        """Decode one frame, route on 'type', and forward every derived record."""
        try:
            payload: Any = json.loads(raw)
        except (ValueError, RecursionError) as e:
            self._report(_chain(DecodeError(f"unable to parse incoming msg: {e}"), e))
            return
        if not isinstance(payload, dict):
            self._report(DecodeError(f"expected JSON object, got {type(payload).__name__}"))
            return

        event_type = payload.get("type")
        if event_type == "ticker":
            records: list[BaseModel] = [normalize_ticker(payload)]
        elif event_type == "l2update":
            records = list(normalize_l2update(payload, on_error=self._report))
        else:
            if event_type == "error":
                log.warning("feed_error_frame", message=payload.get("message"), reason=payload.get("reason"))
            return

        for record in records:
            self._forward(record)

    def _forward(self, record: BaseModel) -> None:
        data = record.model_dump_json().encode()
        try:
            metrics = self._parser.parse(data)
        except Exception as e:
            self._report(_chain(ForwardError(f"unable to parse {record.type} record: {e}"), e))
            return
        for metric in metrics:
            try:
                self._sink.add_record(metric)
            except Exception as e:
                self._report(_chain(ForwardError(f"sink rejected {metric.name} metric: {e}"), e))
                continue
            self.records_forwarded += 1

    # -- concurrency -----------------------------------------------------

    async def _worker(self, queue: asyncio.Queue[str | bytes]) -> None:
        while True:
            frame = await queue.get()
            try:
                self.process_frame(frame)
            except Exception:
                log.exception("dispatch_frame_failed")
            finally:
                queue.task_done()
            # Let the reader run between frames
            await asyncio.sleep(0)

    async def _enqueue(
        self,
        queue: asyncio.Queue[str | bytes],
        frame: str | bytes,
        stop_wait: asyncio.Future[Any],
    ) -> bool:
        """Queue a frame under the overflow policy. Returns False if stop fired while waiting."""
        if not queue.full():
            queue.put_nowait(frame)
            return True
        if self.overflow == "drop":
            self.frames_dropped += 1
            if self.frames_dropped == 1 or self.frames_dropped % 1000 == 0:
                log.warning("dispatch_frame_dropped", frames_dropped=self.frames_dropped)
            return True
        put = asyncio.ensure_future(queue.put(frame))
        await asyncio.wait({put, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
        if put.done():
            return True
        put.cancel()
        await asyncio.gather(put, return_exceptions=True)
        return False

    async def _read(self, queue: asyncio.Queue[str | bytes], stop: asyncio.Event) -> None:
        stop_wait = asyncio.ensure_future(stop.wait())
        try:
            while True:
                recv = asyncio.ensure_future(self._source.recv())
                await asyncio.wait({recv, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
                if stop_wait.done():
                    recv.cancel()
                    await asyncio.gather(recv, return_exceptions=True)
                    return
                try:
                    frame = recv.result()
                except Exception as e:
                    log.warning("ws_read_error", error=str(e))
                    self._report(_chain(ReadError(f"read: {e}"), e))
                    return
                self.frames_received += 1
                log.debug("ws_recv", message=frame)
                if not await self._enqueue(queue, frame, stop_wait):
                    return
        finally:
            stop_wait.cancel()
            await asyncio.gather(stop_wait, return_exceptions=True)

    async def _drain(self, queue: asyncio.Queue[str | bytes], workers: list[asyncio.Task[None]]) -> None:
        """Give queued frames drain_timeout_sec to finish, then cancel whatever is left."""
        try:
            await asyncio.wait_for(queue.join(), timeout=self.drain_timeout_sec)
        except asyncio.TimeoutError:
            self.frames_abandoned += queue.qsize()
            log.warning("dispatch_drain_timeout", frames_abandoned=self.frames_abandoned)
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def run(self, stop: asyncio.Event) -> None:
        """Read until stop is set or the channel fails; returns once all workers are done."""
        queue: asyncio.Queue[str | bytes] = asyncio.Queue(maxsize=self.queue_size)
        workers = [asyncio.create_task(self._worker(queue)) for _ in range(self.workers)]
        try:
            await self._read(queue, stop)
        finally:
            await self._drain(queue, workers)
