"""Orders subcommand: add, list, cancel - maintain our own order records."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

import typer

from bookarb.errors import InvalidArgument
from bookarb.storage.db import get_connection, init_schema
from bookarb.storage.orders import list_orders, record_order, set_order_state

app = typer.Typer(help="Record and inspect our own orders (netted out of book liquidity)")


def _decimal(value: str, name: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise typer.BadParameter(f"{name} must be a number, got {value!r}")


@app.command("add")
def add(
    ctx: typer.Context,
    exchange: str = typer.Option(..., "--exchange", "-e"),
    pair: str = typer.Option(..., "--pair"),
    action: str = typer.Option(..., "--action", "-a", help="buy or sell"),
    price: str = typer.Option(..., "--price"),
    volume: str = typer.Option(..., "--volume"),
    order_type: str = typer.Option("limit", "--type", help="limit or market"),
) -> None:
    """Record a resting order placed outside bookarb."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        order_id = record_order(
            conn,
            exchange=exchange,
            currency_pair=pair,
            action=action.lower(),
            order_type=order_type.lower(),
            price=_decimal(price, "price"),
            volume=_decimal(volume, "volume"),
        )
    except InvalidArgument as e:
        raise typer.BadParameter(str(e))
    finally:
        conn.close()
    typer.echo(f"Recorded order {order_id}")


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    exchange: str | None = typer.Option(None, "--exchange", "-e"),
    pair: str | None = typer.Option(None, "--pair"),
    limit: int = typer.Option(50, "--limit", "-n"),
) -> None:
    """List recorded orders, newest first."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        rows = list_orders(conn, exchange=exchange, currency_pair=pair, limit=limit)
    finally:
        conn.close()
    if not rows:
        typer.echo("No orders.")
        return
    for r in rows:
        typer.echo(
            f"  #{r['id']:<6} {r['exchange']:<12} {r['currency_pair']:<8} {r['action']:<4} {r['type']:<6} "
            f"{r['state']:<9} {r['price']} x {r['volume']}  {r['strategy'] or ''}"
        )


@app.command("cancel")
def cancel(ctx: typer.Context, order_id: int = typer.Argument(..., help="Order id")) -> None:
    """Mark an order cancelled so it is no longer netted out."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        found = set_order_state(conn, order_id, "cancelled")
    finally:
        conn.close()
    if not found:
        typer.echo(f"No order {order_id}.")
        raise typer.Exit(1)
    typer.echo(f"Cancelled order {order_id}")
