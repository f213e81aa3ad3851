"""Cycle subcommand: run one arbitrage cycle from a message file."""

from __future__ import annotations

from pathlib import Path

import typer

from bookarb.arbitrage import create_orchestrator
from bookarb.cache.redis_cache import create_redis_client
from bookarb.errors import InvalidArgument, UpstreamUnavailable
from bookarb.storage.db import get_connection, init_schema

app = typer.Typer(help="Run arbitrage cycles")


@app.command("run")
def run_cycle(
    ctx: typer.Context,
    exchange: str = typer.Option(..., "--exchange", "-e", help="Venue the message comes from"),
    counterpart: str = typer.Option(..., "--counterpart", "-c", help="Counterpart venue (read from cache)"),
    pair: str = typer.Option(..., "--pair", help="Currency pair ISO code, e.g. BTC-EUR"),
    side: str = typer.Option(..., "--side", "-s", help="ask or bid"),
    message: Path = typer.Option(..., "--message", "-m", exists=True, dir_okay=False, help="JSON wire message"),
    snapshot: bool = typer.Option(False, "--snapshot", help="Replace the local book instead of applying updates"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log orders without recording them"),
) -> None:
    """Apply a wire message to the local book, then gate and attempt strategies once."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    client = create_redis_client(settings)
    try:
        orchestrator = create_orchestrator(settings, conn, client, record_orders=not dry_run)
        result = orchestrator.handle(
            message.read_text(),
            side=side,
            exchange=exchange,
            counterpart_exchange=counterpart,
            currency_pair=pair,
            snapshot=snapshot,
        )
    except InvalidArgument as e:
        typer.echo(f"Invalid input: {e}", err=True)
        raise typer.Exit(2)
    except UpstreamUnavailable as e:
        typer.echo(f"No trade: counterpart book unavailable ({e})", err=True)
        raise typer.Exit(1)
    finally:
        client.close()
        conn.close()
    typer.echo(f"Outcome: {result.outcome.value}")
    if result.quote is not None:
        q = result.quote
        typer.echo(f"Spread: {q.spread} ({q.local_price} local vs {q.counterpart_price} counterpart, rate {q.rate:.6f})")
