"""
feedcache/core/http_client.py
Shared async httpx clients.
  • plain_client()   → JSON APIs (NASA, Met Office, Steam)
  • scrape_client()  → browser-like headers for HTML outlets (PCGamer, BBC, wiki)
"""

import httpx
from feedcache.core.config import SCRAPE_HEADERS

_plain_client:  httpx.AsyncClient | None = None
_scrape_client: httpx.AsyncClient | None = None

_LIMITS  = httpx.Limits(max_connections=10, max_keepalive_connections=5)
_TIMEOUT = httpx.Timeout(30.0, connect=15.0)


def plain_client() -> httpx.AsyncClient:
    global _plain_client
    if _plain_client is None or _plain_client.is_closed:
        _plain_client = httpx.AsyncClient(
            timeout=_TIMEOUT,
            follow_redirects=True,
            limits=_LIMITS,
        )
    return _plain_client


def scrape_client() -> httpx.AsyncClient:
    global _scrape_client
    if _scrape_client is None or _scrape_client.is_closed:
        _scrape_client = httpx.AsyncClient(
            headers=SCRAPE_HEADERS,
            timeout=_TIMEOUT,
            follow_redirects=True,
            limits=_LIMITS,
        )
    return _scrape_client


async def close_all() -> None:
    for c in [_plain_client, _scrape_client]:
        if c and not c.is_closed:
            await c.aclose()
