"""
feedcache/routers/steam.py
Endpoints:
  GET /api/steam/achievements?gameId=&userId=   → live Steam fetch, cached as a side effect
  GET /api/steam/games                          → cached game/player scopes
  GET /api/steam/games/{scope}                  → cached achievements for a scope
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from feedcache.core.cache import get_storage
from feedcache.core.config import STEAM
from feedcache.core.responses import envelope
from feedcache.scrapers.steam import SteamError, get_game_data

router = APIRouter(prefix="/api/steam", tags=["steam"])


@router.get("/achievements")
async def get_achievements(
    request: Request,
    game_id: Optional[str] = Query(None, alias="gameId"),
    user_id: Optional[str] = Query(None, alias="userId"),
):
    try:
        data = await get_game_data(game_id, user_id)
    except SteamError as ex:
        raise HTTPException(ex.status, detail=ex.message)
    return envelope(request, data, f"Steam achievements for game {game_id}.")


@router.get("/games")
async def list_games(request: Request):
    return envelope(request, get_storage().collections(STEAM), "Cached achievement lists.")


@router.get("/games/{scope}")
async def get_game(
    request: Request,
    scope: str,
    page_size: Optional[int] = Query(None, ge=1, alias="pageSize"),
    page:      Optional[int] = Query(None, ge=1),
):
    return envelope(request, get_storage().search(STEAM, scope, page_size, page), f"Cached achievements for {scope}.")
