"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
-- Sequences for auto-increment IDs
CREATE SEQUENCE IF NOT EXISTS metric_seq START 1;
CREATE SEQUENCE IF NOT EXISTS error_seq START 1;

-- Metric log (append-only, one row per parsed metric)
CREATE TABLE IF NOT EXISTS metrics (
    id              BIGINT PRIMARY KEY DEFAULT nextval('metric_seq'),
    name            VARCHAR NOT NULL,
    tags            JSON NOT NULL,
    fields          JSON NOT NULL,
    ts              BIGINT NOT NULL,
    ingest_ts       BIGINT NOT NULL
);

-- Errors reported by the dispatch loop (decode, normalize, forward, read)
CREATE TABLE IF NOT EXISTS ingest_errors (
    id              BIGINT PRIMARY KEY DEFAULT nextval('error_seq'),
    kind            VARCHAR NOT NULL,
    message         VARCHAR NOT NULL,
    ingest_ts       BIGINT NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    Use read_only=True when another process may be writing (e.g. cbfeed run --output store)."""
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables and sequences if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
