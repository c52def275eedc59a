"""
feedcache/scrapers/weather.py
═══════════════════════════════════════════════════════════════════════════════
Met Office DataHub daily site-specific forecast → namespace WEATHER,
collection "MetOffice".

  GET {MET_OFFICE_BASE}?latitude=..&longitude=..   header: apikey

Response (trimmed):
  features[0].properties.timeSeries[] → {
      time, dayMaxScreenTemperature, nightMinScreenTemperature,
      dayMaxFeelsLikeTemp, midday10MWindSpeed, daySignificantWeatherCode
  }

One cached record per reading. A day whose figures change between refreshes
gets a new id, and the superseded reading stays beside it: every refresh
re-arms the collection TTL, so old readings only clear once refreshes stop
for a full TTL.
═══════════════════════════════════════════════════════════════════════════════
"""

import logging
from datetime import datetime
from typing import Optional

from feedcache.core.cache import get_storage
from feedcache.core.config import (
    APP_ENV, LONDON, MET_OFFICE_API_KEY, MET_OFFICE_BASE, MET_OFFICE_LATITUDE,
    MET_OFFICE_LONGITUDE, WEATHER, use_mock_data,
)
from feedcache.core.events import RELOAD_WEATHER, notify
from feedcache.core.http_client import plain_client
from feedcache.core.identity import date_generator

log = logging.getLogger("weather")

SITE = "MetOffice"

# Met Office significant weather code → (icon, description)
WEATHER_CODES: dict[int, tuple[str, str]] = {
    0:  ("sun",     "Clear night"),
    1:  ("sun",     "Sunny day"),
    2:  ("cloud",   "Partly cloudy (night)"),
    3:  ("cloud",   "Partly cloudy (day)"),
    5:  ("foggy",   "Mist"),
    6:  ("foggy",   "Fog"),
    7:  ("cloud",   "Cloudy"),
    8:  ("cloud",   "Overcast"),
    9:  ("rain",    "Light rain shower (night)"),
    10: ("rain",    "Light rain shower (day)"),
    11: ("rain",    "Drizzle"),
    12: ("rain",    "Light rain"),
    13: ("rain",    "Heavy rain shower (night)"),
    14: ("rain",    "Heavy rain shower (day)"),
    15: ("rain",    "Heavy rain"),
    16: ("snow",    "Sleet shower (night)"),
    17: ("snow",    "Sleet shower (day)"),
    18: ("snow",    "Sleet"),
    19: ("snow",    "Hail shower (night)"),
    20: ("snow",    "Hail shower (day)"),
    21: ("snow",    "Hail"),
    22: ("snow",    "Light snow shower (night)"),
    23: ("snow",    "Light snow shower (day)"),
    24: ("snow",    "Light snow"),
    25: ("snow",    "Heavy snow shower (night)"),
    26: ("snow",    "Heavy snow shower (day)"),
    27: ("snow",    "Heavy snow"),
    28: ("thunder", "Thunder shower (night)"),
    29: ("thunder", "Thunder shower (day)"),
    30: ("thunder", "Thunder"),
}
UNKNOWN_WEATHER = ("cloud", "Not available")

MOCK_WEATHER_RESPONSE: list[dict] = [
    {
        "maxFeels": "18º", "lowTemp": "14º", "maxTemp": "20º", "maxWindSpeed": 3,
        "time": "01/02/2023", "weather": "cloud", "weatherDescription": "Cloudy",
    },
    {
        "lowTemp": "13º", "maxFeels": "16º", "maxTemp": "18º", "maxWindSpeed": 3,
        "time": "02/02/2023", "weather": "rain", "weatherDescription": "Light rain",
    },
]


def _degrees(value: Optional[float]) -> str:
    return f"{round(value)}º" if value is not None else "N/A"


def _uk_date(value: str) -> str:
    """'01/02/2023' (dd/mm/yyyy) → London midnight as a UTC ISO string."""
    try:
        return date_generator(LONDON.localize(datetime.strptime(value, "%d/%m/%Y")))
    except (TypeError, ValueError):
        return date_generator(None)


def parse_forecast(data: dict) -> list[dict]:
    features = data.get("features") or []
    if not features:
        return []
    series = features[0].get("properties", {}).get("timeSeries", [])

    records = []
    for step in series:
        code = step.get("daySignificantWeatherCode")
        if code is None:
            code = step.get("nightSignificantWeatherCode")
        weather, description = WEATHER_CODES.get(code, UNKNOWN_WEATHER)
        wind = step.get("midday10MWindSpeed")
        records.append({
            "maxTemp":            _degrees(step.get("dayMaxScreenTemperature")),
            "lowTemp":            _degrees(step.get("nightMinScreenTemperature")),
            "maxFeels":           _degrees(step.get("dayMaxFeelsLikeTemp")),
            "maxWindSpeed":       round(wind) if wind is not None else None,
            "weather":            weather,
            "weatherDescription": description,
            "date":               date_generator(step.get("time")),
        })
    return records


def mock_forecast() -> list[dict]:
    records = []
    for entry in MOCK_WEATHER_RESPONSE:
        record = {k: v for k, v in entry.items() if k != "time"}
        record["date"] = _uk_date(entry["time"])
        records.append(record)
    return records


async def get_met_office() -> None:
    if use_mock_data():
        get_storage().write(WEATHER, SITE, f"Weather in {APP_ENV}", mock_forecast())
        await notify(RELOAD_WEATHER)
        return

    r = await plain_client().get(
        MET_OFFICE_BASE,
        params={
            "latitude":                 MET_OFFICE_LATITUDE,
            "longitude":                MET_OFFICE_LONGITUDE,
            "excludeParameterMetadata": "true",
        },
        headers={"apikey": MET_OFFICE_API_KEY, "accept": "application/json"},
    )
    r.raise_for_status()
    records = parse_forecast(r.json())
    if not records:
        log.warning(f"{SITE}: empty forecast, keeping cached copy")
        return

    log.info(f"{SITE}: {len(records)} days")
    get_storage().write(WEATHER, SITE, "Met Office daily forecast.", records)
    await notify(RELOAD_WEATHER)


async def get_weather() -> None:
    await get_met_office()
