"""
feedcache/scrapers/news.py
═══════════════════════════════════════════════════════════════════════════════
News collectors → namespace NEWS, one collection per outlet.

  PCGamer  →  pcgamer.com/uk trending panel  (server-rendered HTML)
  BBC      →  bbc.co.uk/news/england          (server-rendered HTML)
  NASA     →  Astronomy Picture of the Day    (JSON API)

Every article has the same shape: {title, url, img, date} (+ description for
NASA). Articles carry no natural key; the cache derives ids from content, so
an article seen again on the next cycle updates in place.
═══════════════════════════════════════════════════════════════════════════════
"""

import logging

from bs4 import BeautifulSoup, Tag

from feedcache.core.cache import get_storage
from feedcache.core.config import (
    BBC_BASE, BBC_URL, NASA_API_KEY, NASA_APOD, NEWS, PCGAMER_URL, use_mock_data,
)
from feedcache.core.events import RELOAD_NEWS, notify
from feedcache.core.http_client import plain_client, scrape_client
from feedcache.core.identity import date_generator

log = logging.getLogger("news")

NOT_FOUND = "Not Found"

MOCK_NEWS_ARTICLES: list[dict] = [
    {
        "title": "Mock headline one",
        "url":   "https://example.com/articles/one",
        "img":   "https://example.com/images/one.jpg",
        "date":  "2023-02-01T09:00:00.000Z",
    },
    {
        "title": "Mock headline two",
        "url":   "https://example.com/articles/two",
        "img":   "https://example.com/images/two.jpg",
        "date":  "2023-02-01T10:30:00.000Z",
    },
]


# ── Fetch + store ─────────────────────────────────────────────────────────────

async def fetch_articles(url: str, container_selector: str, split_selector: str) -> list[Tag]:
    """Every non-empty `split_selector` element inside each `container_selector`."""
    r = await scrape_client().get(url)
    r.raise_for_status()
    soup = BeautifulSoup(r.text, "html.parser")

    elements = []
    for container in soup.select(container_selector):
        for article in container.select(split_selector):
            if article.get_text(strip=True):
                elements.append(article)
    return elements


async def save_articles(site: str, articles: list[dict], description: str = "") -> None:
    if not articles:
        # never refresh a collection's TTL with nothing
        log.warning(f"{site}: no articles parsed, keeping cached copy")
        return
    get_storage().write(NEWS, site, description or f"{site}'s Latest News.", articles)
    await notify(RELOAD_NEWS)


# ── Outlet parsers ────────────────────────────────────────────────────────────

def _text(el: Tag, selector: str) -> str:
    found = el.select_one(selector)
    text = found.get_text(strip=True) if found else ""
    return text or NOT_FOUND


def parse_pcgamer(elements: list[Tag]) -> list[dict]:
    articles = []
    for el in elements:
        link = el.find("a")
        img  = el.select_one(".article-lead-image-wrap")
        when = el.select_one(".relative-date")
        articles.append({
            "title": _text(el, ".article-name"),
            "url":   (link.get("href") if link else None) or NOT_FOUND,
            "img":   (img.get("data-original") if img else None) or NOT_FOUND,
            "date":  date_generator(when.get("datetime") if when else None),
        })
    return articles


def parse_bbc(elements: list[Tag]) -> list[dict]:
    articles: list[dict] = []
    seen_titles: set[str] = set()
    for el in elements:
        image = el.find("img")
        img = image.get("data-src") if image else None
        if img:
            img = img.replace("{width}", "720")
        else:
            img = (image.get("src") if image else None) or NOT_FOUND

        link  = el.find("a")
        href  = (link.get("href") if link else "") or ""
        parts = href.split("/")
        # "/news/live/..." → live blogs churn constantly, skip them
        if len(parts) > 2 and parts[2] == "live":
            continue

        title = _text(el, ".gs-c-promo-heading__title")
        if title in seen_titles:
            continue
        seen_titles.add(title)

        when = el.find("time")
        articles.append({
            "title": title,
            "url":   f"{BBC_BASE}{href}" if href else NOT_FOUND,
            "img":   img,
            "date":  date_generator(when.get("datetime") if when else None),
        })
    return articles


def parse_nasa(data: dict) -> list[dict]:
    return [{
        "title":       data.get("title", NOT_FOUND),
        "url":         data.get("url", NOT_FOUND),
        "description": data.get("explanation", ""),
        "img":         data.get("hdurl") or data.get("url", NOT_FOUND),
        "date":        date_generator(data.get("date")),
    }]


# ── Jobs ──────────────────────────────────────────────────────────────────────

async def get_pcgamer_news() -> None:
    site = "PCGamer"
    if use_mock_data():
        return await save_articles(site, MOCK_NEWS_ARTICLES)
    elements = await fetch_articles(PCGAMER_URL, ".list-text-links-trending-panel", ".listingResult")
    articles = parse_pcgamer(elements)
    log.info(f"{site}: {len(articles)} articles")
    await save_articles(site, articles)


async def get_bbc_news() -> None:
    site = "BBC"
    if use_mock_data():
        return await save_articles(site, MOCK_NEWS_ARTICLES)
    elements = await fetch_articles(BBC_URL, "#topos-component", ".gs-t-News")
    articles = parse_bbc(elements)
    log.info(f"{site}: {len(articles)} articles")
    await save_articles(site, articles)


async def get_nasa_image() -> None:
    site = "NASA"
    if use_mock_data():
        return await save_articles(site, MOCK_NEWS_ARTICLES, "NASA Daily Image.")
    r = await plain_client().get(NASA_APOD, params={"api_key": NASA_API_KEY or "DEMO_KEY"})
    r.raise_for_status()
    await save_articles(site, parse_nasa(r.json()), "NASA Daily Image.")


NEWS_JOBS = [get_pcgamer_news, get_bbc_news, get_nasa_image]
