"""Listen subcommand: run an arbitrage cycle for every message of a live feed."""

from __future__ import annotations

import asyncio
import json
import signal
import sys
from typing import Any

import structlog
import typer

from bookarb.arbitrage import create_orchestrator
from bookarb.cache.redis_cache import create_redis_client
from bookarb.errors import BookArbError
from bookarb.ingestion.ws import run_feed
from bookarb.models.orderbook import Side
from bookarb.storage.db import get_connection, init_schema

log = structlog.get_logger(__name__)


def listen(
    ctx: typer.Context,
    exchange: str = typer.Option(..., "--exchange", "-e"),
    counterpart: str = typer.Option(..., "--counterpart", "-c"),
    pair: str = typer.Option(..., "--pair"),
    side: str = typer.Option(..., "--side", "-s", help="ask or bid"),
    url: str | None = typer.Option(None, "--url", help="Feed URL (overrides config)"),
    subscribe: str | None = typer.Option(None, "--subscribe", help="JSON subscription message to send on connect"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log orders without recording them"),
) -> None:
    """Connect to the feed and handle each message as one load -> gate -> strategy cycle."""
    settings = ctx.obj["settings"]
    ws_url = url or settings.feed_url
    if not ws_url:
        typer.echo("No feed URL. Pass --url or set [feed] ws_url.")
        raise typer.Exit(1)
    try:
        side_tag = Side.parse(side)
        sub = json.loads(subscribe) if subscribe else None
    except (BookArbError, json.JSONDecodeError) as e:
        raise typer.BadParameter(str(e))

    conn = get_connection(settings.db_path)
    init_schema(conn)
    client = create_redis_client(settings)
    orchestrator = create_orchestrator(settings, conn, client, record_orders=not dry_run)

    def on_message(payload: dict[str, Any], ingest_ts: int) -> None:
        if "orderbook" not in payload:
            return
        try:
            result = orchestrator.handle(
                payload,
                side=side_tag,
                exchange=exchange,
                counterpart_exchange=counterpart,
                currency_pair=pair,
            )
        except BookArbError as e:
            # One bad message or cache outage costs one cycle, not the feed
            log.warning("cycle_aborted", error=str(e), error_type=type(e).__name__, ingest_ts=ingest_ts)
            return
        log.debug("cycle_done", outcome=result.outcome.value, ingest_ts=ingest_ts)

    stop_event = asyncio.Event()

    def shutdown() -> None:
        stop_event.set()

    loop = asyncio.new_event_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, shutdown)
        loop.add_signal_handler(signal.SIGTERM, shutdown)
    try:
        typer.echo(f"Listening on {ws_url} (Ctrl+C to stop)...")
        loop.run_until_complete(
            run_feed(
                ws_url,
                on_message,
                subscribe=sub,
                reconnect_base_delay_sec=settings.reconnect_base_delay_sec,
                reconnect_max_delay_sec=settings.reconnect_max_delay_sec,
                reconnect_max_retries=settings.reconnect_max_retries,
                stop_event=stop_event,
            )
        )
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()
        client.close()
        conn.close()
    typer.echo("Stopped.")
