"""
feedcache/core/identity.py
═══════════════════════════════════════════════════════════════════════════════
Content identity + timestamp normalisation for cached items.

  identify(item)        → UUIDv5 over the item's stable fields
  date_generator(value) → UTC ISO-8601 string, "now" when missing/unparsable

Identity never depends on where an item is stored: the same stable content
gives the same id in every namespace and collection.
═══════════════════════════════════════════════════════════════════════════════
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

# Fixed root for every identifier this service hands out
ITEM_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://feedcache/items")

# Engine-assigned or time-varying, never hashed
ALWAYS_VOLATILE = frozenset({"id", "date"})


def stable_json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)


def identify(item: dict, volatile: Iterable[str] = ()) -> str:
    skip = ALWAYS_VOLATILE.union(volatile)
    stable = {k: v for k, v in item.items() if k not in skip}
    return str(uuid.uuid5(ITEM_NAMESPACE, stable_json_dumps(stable)))


# ── Dates ─────────────────────────────────────────────────────────────────────

def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime to an aware UTC datetime, else None."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_utc(dt: datetime) -> str:
    dt = dt.astimezone(timezone.utc)
    # %Y does not zero-pad years before 1000, and dates compare as strings
    return f"{dt.year:04d}-" + dt.strftime("%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def date_generator(value: Any) -> str:
    dt = parse_date(value)
    return iso_utc(dt if dt else utc_now())
