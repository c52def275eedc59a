"""
feedcache/main.py  ·  feedcache API
Startup: launches the refresh scheduler (which warms the cache).
Every data route reads the in-memory cache only, except the Steam
achievements route which fetches on demand.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from feedcache.core import events
from feedcache.core.cache import close_storage, get_storage
from feedcache.core.config import APP_ENV, CACHE_TTL_S
from feedcache.core.errors import CacheError
from feedcache.core.http_client import close_all
from feedcache.core.scheduler import run_scheduler
from feedcache.routers import forecasts, news, steam

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("main")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(f"feedcache {VERSION} starting ({APP_ENV})...")
    task = asyncio.create_task(run_scheduler())
    yield
    log.info("Shutting down...")
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    await close_all()
    close_storage()


app = FastAPI(
    title="feedcache",
    description=(
        "Cache-first aggregation API. News (PCGamer, BBC, NASA), Met Office "
        "forecasts and Steam achievements are collected in the background, "
        "deduplicated by content and served from memory."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.exception_handler(CacheError)
async def cache_error_handler(request: Request, exc: CacheError):
    return JSONResponse(status_code=exc.status, content={"message": exc.message})


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(news.router)
app.include_router(forecasts.router)
app.include_router(steam.router)


@app.get("/", tags=["meta"])
async def root():
    return {
        "status":  "online",
        "version": VERSION,
        "endpoints": {
            "news":          "/api/news?order=DESC&pageSize=&page=",
            "news_outlets":  "/api/news/outlets",
            "news_outlet":   "/api/news/{outlet}",
            "news_article":  "/api/news/articles/{id}",
            "forecasts":     "/api/forecasts",
            "forecast":      "/api/forecasts/{outlet}",
            "timeseries":    "/api/forecasts/{outlet}/timeseries",
            "achievements":  "/api/steam/achievements?gameId=&userId=",
            "steam_games":   "/api/steam/games",
            "updates":       "/ws",
            "health":        "/health",
            "docs":          "/docs",
        },
    }


@app.get("/health", tags=["meta"])
async def health():
    summary = get_storage().summary()
    return {
        "status":     "healthy" if summary else "warming_up",
        "ttl_s":      CACHE_TTL_S,
        "listeners":  events.listener_count(),
        "namespaces": summary,
    }


@app.websocket("/ws")
async def updates(ws: WebSocket):
    await events.connect(ws)
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        events.disconnect(ws)
