"""
feedcache/core/cache.py
═══════════════════════════════════════════════════════════════════════════
Namespaced, content-addressed in-memory cache.
  • Collectors call write(); routers call the read side only
  • namespace → collection → {item id → item}, ids from identify()
  • Re-ingesting the same item updates it in place, never duplicates it
  • Each collection has its own TTL timer, re-armed on every write
  • A write builds a new sorted snapshot and swaps it in under the
    collection lock → readers never see a half-merged collection
  • Expired collections keep their metadata; item queries report 404
═══════════════════════════════════════════════════════════════════════════
"""

import copy
import logging
import threading
from typing import Any, Callable, Iterable, Optional, Sequence

from feedcache.core.config import CACHE_TTL_S, VOLATILE_FIELDS
from feedcache.core.errors import (
    CollectionNotFound,
    ItemNotFound,
    NamespaceNotFound,
    NoCollectionsInNamespace,
    NoItemsInCollection,
    NoItemsInNamespace,
    PageOutOfRange,
)
from feedcache.core.identity import date_generator, identify

log = logging.getLogger("cache")

ASC  = "ASC"
DESC = "DESC"


def chunk_response(items: Sequence[Any], chunk_size: int) -> list[list[Any]]:
    """Split `items` into consecutive chunks of at most `chunk_size`, order kept."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    items = list(items)
    return [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]


def _date_key(item: dict) -> str:
    # dates are normalised to fixed-width UTC ISO strings on write
    return item["date"]


class Collection:
    def __init__(self, name: str, description: str):
        self.name        = name
        self.description = description
        self.updated_at  = ""
        self.items: dict[str, dict] = {}   # published snapshot, replaced wholesale
        self.lock        = threading.Lock()
        self.timer       = None
        self.generation  = 0

    def meta(self) -> dict:
        return {
            "name":        self.name,
            "description": self.description,
            "updated_at":  self.updated_at,
        }


class CacheEngine:
    def __init__(
        self,
        ttl_s: float = CACHE_TTL_S,
        volatile_fields: Iterable[str] = VOLATILE_FIELDS,
        preserve_first_date: bool = False,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self._ttl_s               = ttl_s
        self._volatile            = frozenset(volatile_fields)
        self._preserve_first_date = preserve_first_date
        self._timer_factory       = timer_factory
        self._index: dict[str, dict[str, Collection]] = {}
        self._index_lock = threading.Lock()

    # ── Index ─────────────────────────────────────────────────────────────────

    def _upsert_collection(self, namespace: str, name: str, description: str) -> Collection:
        with self._index_lock:
            collections = self._index.setdefault(namespace, {})
            col = collections.get(name)
            if col is None:
                col = Collection(name, description)
                col.updated_at = date_generator(None)
                collections[name] = col
                log.info(f"New collection {namespace}/{name}")
            return col

    def _collections_in(self, namespace: str) -> Optional[dict[str, Collection]]:
        with self._index_lock:
            collections = self._index.get(namespace)
            return dict(collections) if collections is not None else None

    @staticmethod
    def _snapshot(col: Collection) -> tuple[dict[str, dict], str, str]:
        with col.lock:
            return col.items, col.description, col.updated_at

    # ── Write path ────────────────────────────────────────────────────────────

    def _prepare(self, item: dict, collection_name: str) -> dict:
        # the caller's own "name" is hashed before the collection name replaces it
        prepared = copy.deepcopy(dict(item))
        prepared["date"] = date_generator(prepared.get("date"))
        prepared["id"]   = identify(prepared, self._volatile)
        prepared["name"] = collection_name
        return prepared

    def write(self, namespace: str, collection_name: str, description: str, items: Iterable[dict]) -> None:
        """Merge `items` into namespace/collection and restart its TTL."""
        if not namespace or not collection_name:
            raise ValueError("namespace and collection name must be non-empty strings")

        incoming = [self._prepare(item, collection_name) for item in items]
        col = self._upsert_collection(namespace, collection_name, description)

        with col.lock:
            merged = dict(col.items)
            for item in incoming:
                previous = merged.get(item["id"])
                if previous is not None and self._preserve_first_date:
                    item["date"] = previous["date"]
                merged[item["id"]] = item
            ordered = sorted(merged.values(), key=_date_key, reverse=True)
            col.items       = {item["id"]: item for item in ordered}
            col.description = description
            col.updated_at  = date_generator(None)
            self._arm(namespace, col)
            total = len(col.items)

        log.info(f"{namespace}/{collection_name}: merged {len(incoming)} items ({total} cached)")

    # ── Expiration ────────────────────────────────────────────────────────────

    def _arm(self, namespace: str, col: Collection) -> None:
        """Cancel the pending timer and start a fresh one. Caller holds col.lock."""
        if col.timer is not None:
            col.timer.cancel()
        col.generation += 1
        timer = self._timer_factory(self._ttl_s, self._expire, args=(namespace, col, col.generation))
        timer.daemon = True
        timer.start()
        col.timer = timer

    def _expire(self, namespace: str, col: Collection, generation: int) -> None:
        with col.lock:
            # a later write re-armed this collection; this timer is stale
            if generation != col.generation:
                return
            dropped = len(col.items)
            col.items = {}
            col.timer = None
        log.info(f"{namespace}/{col.name}: expired {dropped} items")

    def close(self) -> None:
        """Cancel every pending expiry timer."""
        with self._index_lock:
            collections = [c for ns in self._index.values() for c in ns.values()]
        for col in collections:
            with col.lock:
                if col.timer is not None:
                    col.timer.cancel()
                    col.timer = None
                col.generation += 1

    # ── Read path ─────────────────────────────────────────────────────────────

    @staticmethod
    def _page(items: list[dict], page_size: Optional[int], page: Optional[int]) -> list[dict]:
        pages = chunk_response(items, page_size if page_size is not None else max(len(items), 1))
        page = 1 if page is None else page
        if page < 1 or page > len(pages):
            raise PageOutOfRange(page)
        return [dict(item) for item in pages[page - 1]]

    def collections(self, namespace: str) -> list[dict]:
        collections = self._collections_in(namespace)
        if not collections:
            raise NoCollectionsInNamespace(namespace)
        result = []
        for col in collections.values():
            with col.lock:
                result.append(col.meta())
        return result

    def search(
        self,
        namespace: str,
        collection_name: str,
        page_size: Optional[int] = None,
        page: Optional[int] = None,
    ) -> dict:
        collections = self._collections_in(namespace)
        if collections is None:
            raise NamespaceNotFound(namespace)
        col = collections.get(collection_name)
        if col is None:
            raise CollectionNotFound(namespace, collection_name)

        items, description, updated_at = self._snapshot(col)
        if not items:
            raise NoItemsInCollection(namespace, collection_name)

        return {
            "description": description,
            "updated_at":  updated_at,
            "items":       self._page(list(items.values()), page_size, page),
        }

    def list_items(
        self,
        namespace: str,
        order: str = DESC,
        page_size: Optional[int] = None,
        page: Optional[int] = None,
    ) -> dict:
        """Every item in the namespace, newest first unless order is ASC."""
        merged: list[dict] = []
        for col in (self._collections_in(namespace) or {}).values():
            merged.extend(self._snapshot(col)[0].values())
        if not merged:
            raise NoItemsInNamespace(namespace)

        merged.sort(key=_date_key, reverse=(order or DESC).upper() != ASC)
        return {
            "description": f"All items available in namespace: {namespace}",
            "items":       self._page(merged, page_size, page),
        }

    def item_by_id(self, namespace: str, item_id: str) -> dict:
        collections = self._collections_in(namespace)
        if collections is None:
            raise NamespaceNotFound(namespace)
        for col in collections.values():
            item = self._snapshot(col)[0].get(item_id)
            if item is not None:
                return dict(item)
        raise ItemNotFound(item_id)

    def summary(self) -> dict:
        """Metadata only, safe to expose in /health."""
        out: dict[str, dict] = {}
        with self._index_lock:
            index = {ns: dict(cols) for ns, cols in self._index.items()}
        for ns, cols in index.items():
            out[ns] = {}
            for name, col in cols.items():
                items, _, updated_at = self._snapshot(col)
                out[ns][name] = {"items": len(items), "updated_at": updated_at}
        return out


# ── Process-wide instance ─────────────────────────────────────────────────────

_storage: Optional[CacheEngine] = None


def get_storage() -> CacheEngine:
    global _storage
    if _storage is None:
        _storage = CacheEngine()
    return _storage


def close_storage() -> None:
    global _storage
    if _storage is not None:
        _storage.close()
        _storage = None
