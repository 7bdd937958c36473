"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer

from cbfeed.config import get_settings
from cbfeed.config.settings import configure_logging

app = typer.Typer(
    name="cbfeed",
    help="cbfeed - Coinbase market data feed: stream, normalize, emit metrics.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory (default: ./config or package config)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
) -> None:
    """Configure logging and store options in context."""
    settings = get_settings(profile, config_dir)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


# Subcommands registered from other modules
from cbfeed.cli import feed, log  # noqa: E402

app.command("run")(feed.run)
app.command("sample-config")(feed.sample_config)
app.add_typer(log.app, name="log")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
