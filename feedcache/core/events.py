"""
feedcache/core/events.py
"Data changed" push channel for connected dashboards.
  • /ws registers each socket here
  • collectors call `await notify("RELOAD_NEWS")` after a successful write
  • a socket that fails to receive is dropped, never retried
"""

import logging

from fastapi import WebSocket

log = logging.getLogger("events")

RELOAD_NEWS         = "RELOAD_NEWS"
RELOAD_WEATHER      = "RELOAD_WEATHER"
RELOAD_ACHIEVEMENTS = "RELOAD_ACHIEVEMENTS"

_sockets: set[WebSocket] = set()


async def connect(ws: WebSocket) -> None:
    await ws.accept()
    _sockets.add(ws)
    log.info(f"Listener connected ({len(_sockets)} open)")


def disconnect(ws: WebSocket) -> None:
    _sockets.discard(ws)
    log.info(f"Listener disconnected ({len(_sockets)} open)")


def listener_count() -> int:
    return len(_sockets)


async def notify(event: str) -> int:
    """Send `event` to every open socket. Returns how many received it."""
    sent = 0
    for ws in list(_sockets):
        try:
            await ws.send_json({"event": event})
            sent += 1
        except Exception as ex:
            log.warning(f"Dropping listener after send failure: {ex}")
            _sockets.discard(ws)
    return sent
