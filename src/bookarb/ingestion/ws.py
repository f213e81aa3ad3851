"""Order book WebSocket feed - connect, subscribe, receive, reconnect."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Callable

import structlog
import websockets

log = structlog.get_logger(__name__)


def _parse_message(raw: str | bytes) -> dict[str, Any] | None:
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return msg if isinstance(msg, dict) else None


async def run_feed(
    ws_url: str,
    on_message: Callable[[dict[str, Any], int], None],
    *,
    subscribe: dict[str, Any] | None = None,
    reconnect_base_delay_sec: float = 1.0,
    reconnect_max_delay_sec: float = 60.0,
    reconnect_max_retries: int = 0,
    recv_timeout_sec: float = 30.0,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Connect to ws_url, send the optional subscription message, and call on_message(payload, ingest_ts_ms)
    for each JSON object received. Messages are handled one at a time in a worker thread, so a pair's
    cycles never overlap and the blocking cache fetch stays off the event loop.
    Reconnect with exponential backoff until stop_event is set or max retries is reached.
    """
    stop = stop_event or asyncio.Event()
    delay = reconnect_base_delay_sec
    retries = 0

    while not stop.is_set():
        try:
            async with websockets.connect(
                ws_url,
                ping_interval=20,
                ping_timeout=20,
                close_timeout=5,
            ) as ws:
                delay = reconnect_base_delay_sec
                retries = 0
                log.info("ws_connected", url=ws_url)

                if subscribe is not None:
                    await ws.send(json.dumps(subscribe))
                    log.info("ws_subscribed", subscription=subscribe)

                while not stop.is_set():
                    raw = await asyncio.wait_for(ws.recv(), timeout=recv_timeout_sec)
                    ingest_ts = int(time.time() * 1000)
                    msg = _parse_message(raw)
                    if msg is None:
                        log.warning("ws_unparseable_message", size=len(raw))
                        continue
                    await asyncio.to_thread(on_message, msg, ingest_ts)
        except asyncio.CancelledError:
            log.info("ws_cancelled")
            break
        except Exception as e:
            log.warning("ws_error", error=str(e), delay=delay)
            if reconnect_max_retries and retries >= reconnect_max_retries:
                log.error("ws_max_retries_reached")
                break
            retries += 1
            await asyncio.sleep(delay)
            delay = min(delay * 2, reconnect_max_delay_sec)

    log.info("ws_feed_stopped")
