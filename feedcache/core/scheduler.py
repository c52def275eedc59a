"""
feedcache/core/scheduler.py
═══════════════════════════════════════════════════════════════════════════════
Background refresh loop:

  1. ONE scheduler instance ever (guarded by _running flag)
  2. ONE cycle at a time (asyncio.Lock)
  3. Slow cycle → skip the next tick, never queue
  4. Failed collector → retried up to RETRY_TRIES, then logged and dropped;
     the cache keeps its last good copy until TTL
  5. News    → every NEWS_INTERVAL_S    (8 min)
     Weather → every WEATHER_INTERVAL_S (30 min)

Steam achievements are collected on demand by the route, not here.
═══════════════════════════════════════════════════════════════════════════════
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from feedcache.core.config import (
    NEWS_INTERVAL_S, RETRY_DELAY_S, RETRY_TRIES, WEATHER_INTERVAL_S,
)
from feedcache.scrapers.news import NEWS_JOBS
from feedcache.scrapers.weather import get_weather

log = logging.getLogger("scheduler")

# ── State ─────────────────────────────────────────────────────────────────────
_cycle_lock    = asyncio.Lock()
_running       = False
_last_news     = 0.0
_last_weather  = 0.0


async def retry(
    job: Callable[[], Awaitable[None]],
    tries: int = RETRY_TRIES,
    delay_s: float = RETRY_DELAY_S,
) -> bool:
    """Run `job` until it succeeds or `tries` attempts fail. True on success."""
    name = getattr(job, "__name__", repr(job))
    for attempt in range(1, tries + 1):
        try:
            await job()
            return True
        except Exception as ex:
            if attempt >= tries:
                log.error(f"{name} failed... (Tried {tries} times): {ex}")
                return False
            log.warning(f"{name} failed ({ex})... Retrying.")
            await asyncio.sleep(delay_s)
    return False


# ── Individual jobs ───────────────────────────────────────────────────────────

async def _job_news() -> None:
    global _last_news
    if time.time() - _last_news < NEWS_INTERVAL_S:
        return
    _last_news = time.time()
    results = await asyncio.gather(*(retry(job) for job in NEWS_JOBS))
    log.info(f"News: {sum(results)}/{len(results)} outlets refreshed")


async def _job_weather() -> None:
    global _last_weather
    if time.time() - _last_weather < WEATHER_INTERVAL_S:
        return
    _last_weather = time.time()
    ok = await retry(get_weather)
    log.info(f"Weather: {'refreshed' if ok else 'kept cached copy'}")


# ── Main cycle ────────────────────────────────────────────────────────────────

async def run_cycle() -> None:
    if _cycle_lock.locked():
        log.warning("Previous cycle still running, skipping")
        return

    async with _cycle_lock:
        t0 = time.time()
        await asyncio.gather(_job_news(), _job_weather())
        log.info(f"Cycle complete in {time.time() - t0:.1f}s")


def _tick_interval() -> int:
    return min(NEWS_INTERVAL_S, WEATHER_INTERVAL_S)


async def run_scheduler() -> None:
    """
    Called once at startup. Runs until cancelled.
    Never starts a second instance (guarded by _running flag).
    """
    global _running
    if _running:
        log.warning("Scheduler already running, ignoring duplicate start")
        return
    _running = True
    log.info("Scheduler started")

    try:
        # warm the cache before the first request
        try:
            await run_cycle()
        except Exception as ex:
            log.error(f"Startup cycle error: {ex}")

        while True:
            await asyncio.sleep(_tick_interval())
            try:
                await run_cycle()
            except Exception as ex:
                log.error(f"Cycle error (continuing): {ex}")
    finally:
        _running = False
