"""Metric and error append/query - the store sink's log."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from cbfeed.models.metric import Metric

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

MetricRow = tuple[str, str, str, int, int]


def prepare_metric_row(metric: Metric, ingest_ts: int) -> MetricRow:
    """Build a metrics row: (name, tags_json, fields_json, ts_ms, ingest_ts_ms)."""
    return (
        metric.name,
        json.dumps(metric.tags, sort_keys=True),
        json.dumps(metric.fields, sort_keys=True),
        metric.timestamp_ms,
        ingest_ts,
    )


def append_metrics_batch(conn: DuckDBPyConnection, rows: list[MetricRow]) -> None:
    """Append multiple metric rows (see prepare_metric_row)."""
    if not rows:
        return
    conn.executemany(
        """
        INSERT INTO metrics (name, tags, fields, ts, ingest_ts)
        VALUES (?, ?, ?, ?, ?)
        """,
        rows,
    )


def append_error(conn: DuckDBPyConnection, kind: str, message: str, ingest_ts: int) -> None:
    conn.execute(
        "INSERT INTO ingest_errors (kind, message, ingest_ts) VALUES (?, ?, ?)",
        [kind, message, ingest_ts],
    )


def metric_stats(conn: DuckDBPyConnection) -> dict[str, Any]:
    """Return metric log statistics: total count, min/max ts, count by name, errors by kind."""
    total = conn.execute("SELECT COUNT(*) FROM metrics").fetchone()[0]
    min_ts, max_ts = conn.execute("SELECT MIN(ts), MAX(ts) FROM metrics").fetchone()
    by_name = conn.execute(
        "SELECT name, COUNT(*) AS cnt FROM metrics GROUP BY name ORDER BY cnt DESC LIMIT 20"
    ).fetchall()
    errors = conn.execute(
        "SELECT kind, COUNT(*) AS cnt FROM ingest_errors GROUP BY kind ORDER BY cnt DESC"
    ).fetchall()
    return {
        "total_metrics": total,
        "min_ts": min_ts,
        "max_ts": max_ts,
        "by_name": [{"name": r[0], "count": r[1]} for r in by_name],
        "errors_by_kind": [{"kind": r[0], "count": r[1]} for r in errors],
    }
