"""Export the metric log to Parquet."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


def export_metrics_to_parquet(
    conn: DuckDBPyConnection,
    output_path: str | Path,
    name: str | None = None,
) -> int:
    """Export metrics to a Parquet file. Optional filter by metric name. Returns row count."""
    path = Path(output_path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    path_str = str(path).replace("'", "''")
    if name:
        conn.execute(
            f"COPY (SELECT * FROM metrics WHERE name = ?) TO '{path_str}' (FORMAT PARQUET)",
            [name],
        )
        count = conn.execute("SELECT COUNT(*) FROM metrics WHERE name = ?", [name]).fetchone()[0]
    else:
        conn.execute(f"COPY (SELECT * FROM metrics) TO '{path_str}' (FORMAT PARQUET)")
        count = conn.execute("SELECT COUNT(*) FROM metrics").fetchone()[0]
    return count
