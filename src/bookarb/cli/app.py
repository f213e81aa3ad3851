"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer

from bookarb.config import get_settings
from bookarb.config.settings import configure_logging

app = typer.Typer(
    name="bookarb",
    help="bookarb - order book mirror and cross-venue arbitrage decisions.",
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
from bookarb.cli import book, cycle, listen, orders  # noqa: E402

app.add_typer(cycle.app, name="cycle")
app.add_typer(book.app, name="book")
app.add_typer(orders.app, name="orders")
app.command("listen")(listen.listen)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
