"""
feedcache/scrapers/steam.py
═══════════════════════════════════════════════════════════════════════════════
Steam achievements, fetched on demand and cached under namespace ACHIEVEMENTS.

  /ISteamUserStats/GetSchemaForGame/v0002         → every achievement of a game
  /ISteamUserStats/GetPlayerAchievements/v0001    → a player's unlock state
  /ISteamUser/GetPlayerSummaries/v0002            → health check before every fetch

Collection per request scope: "<gameId>" or "<gameId>:<userId>".
Steam's own achievement key ("name") is kept as "apiname" because the cache
owns the "name" field of every item.
═══════════════════════════════════════════════════════════════════════════════
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from feedcache.core.cache import get_storage
from feedcache.core.config import STEAM, STEAM_API, STEAM_API_KEY, WIKI_PAGES
from feedcache.core.events import RELOAD_ACHIEVEMENTS, notify
from feedcache.core.http_client import plain_client, scrape_client
from feedcache.core.identity import date_generator

log = logging.getLogger("steam")


class SteamError(Exception):
    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status  = status


async def check_steam_api() -> None:
    """Raises httpx.HTTPStatusError when Steam is unreachable or erroring."""
    r = await plain_client().get(
        f"{STEAM_API}/ISteamUser/GetPlayerSummaries/v0002/",
        params={"key": STEAM_API_KEY, "steamids": ""},
    )
    r.raise_for_status()


async def fetch_wiki_body(url: str) -> list[str]:
    """Inner HTML of every row in the page's achievement tables."""
    r = await scrape_client().get(url)
    r.raise_for_status()
    soup = BeautifulSoup(r.text, "html.parser")

    rows = []
    for table in soup.select('[data-description="Achievements"]'):
        for row in table.find_all("tr"):
            rows.append(row.decode_contents().replace("\n", ""))
    return rows


async def get_wiki_content(game_id: str) -> Optional[list[str]]:
    url = WIKI_PAGES.get(game_id)
    if not url:
        return None
    return await fetch_wiki_body(url)


def merge_player_state(schema: list[dict], player: list[dict]) -> list[dict]:
    state = {a.get("apiname"): a for a in player}
    merged = []
    for achievement in schema:
        entry = {**achievement, **state.get(achievement.get("name"), {})}
        merged.append(entry)
    return merged


def to_cache_items(achievements: list[dict]) -> list[dict]:
    items = []
    for a in achievements:
        item = {k: v for k, v in a.items() if k != "name"}
        item["apiname"] = a.get("apiname") or a.get("name")
        if a.get("achieved") and a.get("unlocktime"):
            item["date"] = date_generator(datetime.fromtimestamp(a["unlocktime"], tz=timezone.utc))
        items.append(item)
    return items


async def get_game_data(game_id: Optional[str], user_id: Optional[str] = None) -> dict:
    if not game_id:
        raise SteamError("No gameId provided!", 422)

    client = plain_client()
    try:
        await check_steam_api()
        r = await client.get(
            f"{STEAM_API}/ISteamUserStats/GetSchemaForGame/v0002",
            params={"key": STEAM_API_KEY, "appid": game_id},
        )
        r.raise_for_status()
        achievements = (
            r.json().get("game", {}).get("availableGameStats", {}).get("achievements", [])
        )

        if user_id:
            r = await client.get(
                f"{STEAM_API}/ISteamUserStats/GetPlayerAchievements/v0001",
                params={"key": STEAM_API_KEY, "appid": game_id, "steamid": user_id},
            )
            r.raise_for_status()
            player = r.json().get("playerstats", {}).get("achievements", [])
            achievements = merge_player_state(achievements, player)

        wiki = await get_wiki_content(game_id)
    except (httpx.HTTPError, ValueError) as ex:
        log.error(f"Steam request for {game_id} failed: {ex}")
        raise SteamError("Could not process request", 502) from ex

    if achievements:
        collection = f"{game_id}:{user_id}" if user_id else game_id
        get_storage().write(STEAM, collection, f"Achievements for game {game_id}.", to_cache_items(achievements))
        await notify(RELOAD_ACHIEVEMENTS)

    return {"achievements": achievements, "wiki": wiki}
