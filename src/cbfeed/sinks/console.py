"""Console sink - influx line protocol on stdout, errors to the log."""

from __future__ import annotations

import sys
from typing import TextIO

import structlog

from cbfeed.ingestion.errors import FeedError
from cbfeed.models.metric import Metric

log = structlog.get_logger(__name__)


class ConsoleSink:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout
        self.metric_count = 0
        self.error_count = 0

    def add_record(self, metric: Metric) -> None:
        self._stream.write(metric.to_line_protocol() + "\n")
        self.metric_count += 1

    def add_error(self, err: Exception) -> None:
        self.error_count += 1
        kind = err.kind if isinstance(err, FeedError) else type(err).__name__
        log.error("sink_error", kind=kind, error=str(err))

    def close(self) -> None:
        self._stream.flush()
