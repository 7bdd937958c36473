"""Metric store sink - batches parsed metrics into the DuckDB metric log."""

from __future__ import annotations

import time
from pathlib import Path

import structlog

from cbfeed.ingestion.errors import FeedError
from cbfeed.models.metric import Metric
from cbfeed.storage.db import get_connection, init_schema
from cbfeed.storage.metric_log import MetricRow, append_error, append_metrics_batch, prepare_metric_row

log = structlog.get_logger(__name__)


class MetricStoreSink:
    """Buffers metrics and appends them to DuckDB every batch_size records and on close()."""

    def __init__(self, db_path: str | Path, batch_size: int = 100) -> None:
        self.db_path = Path(db_path)
        self.batch_size = batch_size
        self._conn = None
        self._batch: list[MetricRow] = []
        self.metric_count = 0
        self.error_count = 0

    def _get_conn(self):
        if self._conn is None:
            self._conn = get_connection(self.db_path)
            init_schema(self._conn)
        return self._conn

    def _flush_batch(self) -> None:
        if not self._batch:
            return
        append_metrics_batch(self._get_conn(), self._batch)
        self._batch = []

    def add_record(self, metric: Metric) -> None:
        self._batch.append(prepare_metric_row(metric, int(time.time() * 1000)))
        self.metric_count += 1
        if len(self._batch) >= self.batch_size:
            self._flush_batch()

    def add_error(self, err: Exception) -> None:
        self.error_count += 1
        kind = err.kind if isinstance(err, FeedError) else type(err).__name__
        log.error("sink_error", kind=kind, error=str(err))
        append_error(self._get_conn(), kind, str(err), int(time.time() * 1000))

    def close(self) -> None:
        self._flush_batch()
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        log.info("metric_store_closed", metrics=self.metric_count, errors=self.error_count)
