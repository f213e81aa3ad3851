"""Book subcommand: show, list, load, publish."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from bookarb.cache.redis_cache import OrderBookCache, create_redis_client
from bookarb.errors import InvalidArgument, UpstreamUnavailable
from bookarb.ingestion.normalize import parse_orderbook_message
from bookarb.orderbook.engine import OrderBook
from bookarb.storage.db import get_connection, init_schema
from bookarb.storage.orderbooks import list_orderbooks, load_orderbook, save_orderbook
from bookarb.storage.orders import get_active_limit_orders

app = typer.Typer(help="Inspect, load and publish local order books")


def _restore(conn, exchange: str, pair: str) -> OrderBook | None:
    record = load_orderbook(conn, exchange, pair)
    if record is None:
        return None
    book = OrderBook(exchange, pair)
    book.fill_entries_with(record)
    return book


@app.command("list")
def list_books(ctx: typer.Context) -> None:
    """List stored books."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        rows = list_orderbooks(conn)
    finally:
        conn.close()
    if not rows:
        typer.echo("No stored order books.")
        return
    for row in rows:
        typer.echo(f"  {row['venue']:<16} {row['currency_pair']:<10} updated_at={row['updated_at']}")


@app.command("show")
def show(
    ctx: typer.Context,
    exchange: str = typer.Option(..., "--exchange", "-e"),
    pair: str = typer.Option(..., "--pair"),
    depth: int = typer.Option(10, "--depth", "-d", help="Levels per side"),
    stranger: bool = typer.Option(False, "--stranger", help="Net out our own resting orders"),
) -> None:
    """Print the top of a stored book."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        book = _restore(conn, exchange, pair)
        if book is None:
            typer.echo(f"No stored book for {exchange} {pair}.")
            raise typer.Exit(1)
        if stranger:
            book.fill_system_entries_with(get_active_limit_orders(conn, exchange, pair))
    finally:
        conn.close()
    asks = book.stranger_levels("ask") if stranger else book.asks
    bids = book.stranger_levels("bid") if stranger else book.bids
    typer.echo(f"{book} (updated_at={book.last_updated_at})")
    typer.echo("  asks:")
    for lev in reversed(asks[:depth]):
        typer.echo(f"    {lev.price:>16} {lev.volume:>16}  ts={lev.timestamp}")
    typer.echo("  bids:")
    for lev in bids[:depth]:
        typer.echo(f"    {lev.price:>16} {lev.volume:>16}  ts={lev.timestamp}")


@app.command("load")
def load(
    ctx: typer.Context,
    exchange: str = typer.Option(..., "--exchange", "-e"),
    pair: str = typer.Option(..., "--pair"),
    file: Path = typer.Option(..., "--file", "-f", exists=True, dir_okay=False, help="JSON wire message (snapshot)"),
) -> None:
    """Replace a stored book with a full snapshot message."""
    settings = ctx.obj["settings"]
    try:
        record = parse_orderbook_message(file.read_text())
    except InvalidArgument as e:
        typer.echo(f"Invalid snapshot: {e}", err=True)
        raise typer.Exit(2)
    book = OrderBook(exchange, pair, reject_stale_updates=settings.reject_stale_updates)
    book.fill_entries_with(record)
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        save_orderbook(conn, book)
    finally:
        conn.close()
    typer.echo(f"Stored {book}: {len(book.asks)} asks, {len(book.bids)} bids")


@app.command("publish")
def publish(
    ctx: typer.Context,
    exchange: str = typer.Option(..., "--exchange", "-e"),
    pair: str = typer.Option(..., "--pair"),
    ttl: int | None = typer.Option(None, "--ttl", help="Expire the cache entry after N seconds"),
) -> None:
    """Publish a stored book to the shared cache for counterpart processes."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        book = _restore(conn, exchange, pair)
    finally:
        conn.close()
    if book is None:
        typer.echo(f"No stored book for {exchange} {pair}.")
        raise typer.Exit(1)
    client = create_redis_client(settings)
    try:
        key = OrderBookCache(client).publish(book, ttl_sec=ttl)
    except UpstreamUnavailable as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    finally:
        client.close()
    typer.echo(f"Published {key}")


@app.command("export")
def export(
    ctx: typer.Context,
    exchange: str = typer.Option(..., "--exchange", "-e"),
    pair: str = typer.Option(..., "--pair"),
) -> None:
    """Print a stored book as a wire message."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        book = _restore(conn, exchange, pair)
    finally:
        conn.close()
    if book is None:
        typer.echo(f"No stored book for {exchange} {pair}.")
        raise typer.Exit(1)
    typer.echo(json.dumps({"orderbook": book.to_record().to_payload()}))
