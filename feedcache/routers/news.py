"""
feedcache/routers/news.py
Endpoints:
  GET /api/news                      → every cached article, newest first
  GET /api/news?order=ASC            → oldest first
  GET /api/news/outlets              → outlet metadata (name, description, updated_at)
  GET /api/news/articles/{id}        → one article from any outlet
  GET /api/news/{outlet}             → one outlet's articles

pageSize / page paginate every list endpoint (1-indexed).
All reads from the in-memory cache only. Zero external calls.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request

from feedcache.core.cache import get_storage
from feedcache.core.config import NEWS
from feedcache.core.responses import envelope

router = APIRouter(prefix="/api/news", tags=["news"])


@router.get("")
async def list_news(
    request: Request,
    order:     str           = Query("DESC", pattern="^(ASC|DESC|asc|desc)$"),
    page_size: Optional[int] = Query(None, ge=1, alias="pageSize"),
    page:      Optional[int] = Query(None, ge=1),
):
    result = get_storage().list_items(NEWS, order, page_size, page)
    return envelope(request, result["items"], result["description"])


@router.get("/outlets")
async def list_outlets(request: Request):
    return envelope(request, get_storage().collections(NEWS), "News outlets currently cached.")


@router.get("/articles/{item_id}")
async def get_article(request: Request, item_id: str):
    return envelope(request, get_storage().item_by_id(NEWS, item_id), "A single news article.")


@router.get("/{outlet}")
async def get_outlet(
    request: Request,
    outlet: str,
    page_size: Optional[int] = Query(None, ge=1, alias="pageSize"),
    page:      Optional[int] = Query(None, ge=1),
):
    result = get_storage().search(NEWS, outlet, page_size, page)
    return envelope(request, result, result["description"])
