"""
feedcache/routers/forecasts.py
Endpoints:
  GET /api/forecasts                       → every cached forecast day, newest first
  GET /api/forecasts/locations             → forecast sources (name, description, updated_at)
  GET /api/forecasts/{outlet}              → one source's forecast with metadata
  GET /api/forecasts/{outlet}/timeseries   → one source's forecast days only
"""

from typing import Optional

from fastapi import APIRouter, Query, Request

from feedcache.core.cache import get_storage
from feedcache.core.config import WEATHER
from feedcache.core.responses import envelope

router = APIRouter(prefix="/api/forecasts", tags=["forecasts"])


@router.get("")
async def list_forecasts(
    request: Request,
    order:     str           = Query("DESC", pattern="^(ASC|DESC|asc|desc)$"),
    page_size: Optional[int] = Query(None, ge=1, alias="pageSize"),
    page:      Optional[int] = Query(None, ge=1),
):
    result = get_storage().list_items(WEATHER, order, page_size, page)
    return envelope(request, result["items"], "Every cached forecast day.")


@router.get("/locations")
async def list_locations(request: Request):
    return envelope(request, get_storage().collections(WEATHER), "Forecast sources currently cached.")


@router.get("/{outlet}")
async def get_forecast(request: Request, outlet: str):
    return envelope(request, get_storage().search(WEATHER, outlet), f"Forecast from {outlet}.")


@router.get("/{outlet}/timeseries")
async def get_timeseries(request: Request, outlet: str):
    items = get_storage().search(WEATHER, outlet)["items"]
    return envelope(request, items, f"Daily forecast time series from {outlet}.")
