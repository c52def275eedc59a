"""
feedcache/core/config.py
═══════════════════════════════════════════════════════════════════════════════
NAMESPACES:

  NEWS          →  PCGamer + BBC (HTML scraping), NASA APOD (JSON API)
  WEATHER       →  Met Office DataHub daily site-specific forecast
  ACHIEVEMENTS  →  Steam game schema + player state (on demand)

Every value here can be overridden from the environment. Keys are never
hardcoded; a missing key only disables the collector that needs it.
═══════════════════════════════════════════════════════════════════════════════
"""

import logging
import os

import pytz

log = logging.getLogger("config")

LONDON = pytz.timezone("Europe/London")

# ── Runtime environment ───────────────────────────────────────────────────────
# "development" and "test" write bundled mock payloads instead of scraping.
APP_ENV = os.environ.get("APP_ENV", "production").lower()
MOCK_ENVIRONMENTS = {"development", "test"}


def use_mock_data() -> bool:
    return APP_ENV in MOCK_ENVIRONMENTS


# ── Cache engine ──────────────────────────────────────────────────────────────
CACHE_TTL_S = float(os.environ.get("CACHE_TTL_S", 60 * 60))  # 1 hour

# Fields that never take part in an item's identity, beyond "date" and "id"
VOLATILE_FIELDS = frozenset(
    f.strip() for f in os.environ.get("VOLATILE_FIELDS", "").split(",") if f.strip()
)

NEWS      = "NEWS"
WEATHER   = "WEATHER"
STEAM     = "ACHIEVEMENTS"

# ── Refresh cadence ───────────────────────────────────────────────────────────
NEWS_INTERVAL_S    = int(os.environ.get("NEWS_INTERVAL_S", 8 * 60))      # 8 min
WEATHER_INTERVAL_S = int(os.environ.get("WEATHER_INTERVAL_S", 30 * 60))  # 30 min
RETRY_TRIES        = int(os.environ.get("RETRY_TRIES", 5))
RETRY_DELAY_S      = float(os.environ.get("RETRY_DELAY_S", 10.0))

# ── News outlets ──────────────────────────────────────────────────────────────
PCGAMER_URL = "https://www.pcgamer.com/uk/"
BBC_URL     = "https://www.bbc.co.uk/news/england"
BBC_BASE    = "https://bbc.co.uk"
NASA_APOD   = "https://api.nasa.gov/planetary/apod"

NASA_API_KEY = os.environ.get("NASA_API_KEY", "")
if not NASA_API_KEY:
    log.warning("NASA_API_KEY env var not set, NASA collector will use DEMO_KEY")

# ── Met Office DataHub ────────────────────────────────────────────────────────
MET_OFFICE_BASE      = "https://data.hub.api.metoffice.gov.uk/sitespecific/v0/point/daily"
MET_OFFICE_API_KEY   = os.environ.get("MET_OFFICE_API_KEY", "")
MET_OFFICE_LATITUDE  = os.environ.get("MET_OFFICE_LATITUDE", "51.5072")
MET_OFFICE_LONGITUDE = os.environ.get("MET_OFFICE_LONGITUDE", "-0.1276")

# ── Steam ─────────────────────────────────────────────────────────────────────
STEAM_API     = os.environ.get("STEAM_API", "https://api.steampowered.com")
STEAM_API_KEY = os.environ.get("STEAM_API_KEY", "")

# Steam app id → fandom wiki page listing its achievements
WIKI_PAGES: dict[str, str] = {
    "250900": "https://bindingofisaacrebirth.fandom.com/wiki/Achievements",
}

SCRAPE_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-GB,en;q=0.5",
}
