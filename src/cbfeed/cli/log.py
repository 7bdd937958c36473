"""Log subcommand: export, stats."""

from __future__ import annotations

import typer

from cbfeed.storage.db import get_connection, init_schema
from cbfeed.storage.export import export_metrics_to_parquet
from cbfeed.storage.metric_log import metric_stats

app = typer.Typer(help="Metric log export and statistics")


@app.command("export")
def export(
    ctx: typer.Context,
    name: str | None = typer.Option(None, "--name", "-n", help="Filter by metric name (ticker, l2update)"),
    output: str = typer.Option("metrics.parquet", "--output", "-o", help="Output path"),
) -> None:
    """Export stored metrics to Parquet."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        count = export_metrics_to_parquet(conn, output, name=name)
        typer.echo(f"Exported {count} metrics to {output}")
    finally:
        conn.close()


@app.command("stats")
def stats(ctx: typer.Context) -> None:
    """Show metric log statistics (counts, time range, by name, errors by kind)."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        s = metric_stats(conn)
        typer.echo(f"Total metrics: {s['total_metrics']}")
        typer.echo(f"Min ts: {s.get('min_ts')}")
        typer.echo(f"Max ts: {s.get('max_ts')}")
        if s.get("by_name"):
            typer.echo("By name:")
            for row in s["by_name"]:
                typer.echo(f"  {row['name']}  {row['count']}")
        if s.get("errors_by_kind"):
            typer.echo("Errors by kind:")
            for row in s["errors_by_kind"]:
                typer.echo(f"  {row['kind']}  {row['count']}")
    finally:
        conn.close()
