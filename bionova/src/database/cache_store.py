"""
BioNova-X - Search Cache Store
===============================
Time-boxed key/value cache for ``/search`` results, backed by MongoDB
via ``motor``.

Collection schema (``searches``)::

    {
        "cache_key": str,        # canonical JSON of {query, filters}
        "result": str,           # serialized AiSearchResult
        "created_at": datetime   # UTC
    }

Policy
------
- ``lookup`` returns the newest row for a key only while it is younger
  than the freshness window (``CACHE_TTL_HOURS``).  Older rows are left
  in place and ignored; the next miss inserts a fresh row alongside.
- Storage failures never reach the caller: a failed read is a miss and
  a failed write is logged and dropped.
- No locking.  Concurrent identical misses are collapsed one level up,
  by the orchestrator's single-flight map.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from bionova.config.settings import settings
from bionova.src.core.errors import CacheError
from bionova.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
SearchPayload = dict[str, Any]


# ══════════════════════════════════════════════════════════════════════
#  CACHE KEY
# ══════════════════════════════════════════════════════════════════════

def make_cache_key(query: str, filters: Mapping[str, Any]) -> str:
    """
    Canonical JSON for ``{query, filters}``.

    Keys are sorted at every level and separators are fixed, so two
    requests that differ only in key order produce the same string.
    List order is kept: ``["Mice", "Rats"]`` and ``["Rats", "Mice"]``
    are different keys.
    """
    return json.dumps({"query": query, "filters": dict(filters)}, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# ══════════════════════════════════════════════════════════════════════
#  MONGODB SINGLETON CLIENT
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def _get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
        logger.info("MongoDB async client created (singleton).")
    return _mongo_client


def close_mongo_client() -> None:
    """Close the module-level client, if one was opened."""
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
        logger.info("MongoDB async client closed.")


# ══════════════════════════════════════════════════════════════════════
#  CACHE STORE
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CacheEntry:
    cache_key: str
    result: SearchPayload
    created_at: datetime


class SearchCacheStore:
    """
    Async ``lookup`` / ``insert`` over the search cache collection.

    Parameters
    ----------
    collection
        Optional motor collection (or any object exposing ``find_one``,
        ``insert_one``, ``delete_many``, ``create_index`` and ``drop``
        coroutines).  Defaults to ``settings.CACHE_COLLECTION_NAME`` in
        ``settings.MONGO_DB_NAME``.
    ttl
        Freshness window.  Defaults to ``settings.CACHE_TTL_HOURS``.
    """

    __slots__ = ("_collection", "_ttl")

    def __init__(self, collection: Any = None, ttl: timedelta | None = None) -> None:
        if collection is None:
            client = _get_mongo_client()
            collection = client[settings.MONGO_DB_NAME][settings.CACHE_COLLECTION_NAME]
        self._collection = collection
        self._ttl = ttl or timedelta(hours=settings.CACHE_TTL_HOURS)


    @property
    def ttl(self) -> timedelta:
        return self._ttl


    def is_fresh(self, created_at: datetime, now: datetime | None = None) -> bool:
        """True while ``now - created_at`` is strictly below the TTL."""
        now = now or datetime.now(timezone.utc)
        return now - _as_utc(created_at) < self._ttl


    async def lookup(self, cache_key: str, now: datetime | None = None) -> CacheEntry | None:
        """Return the newest fresh entry for *cache_key*, else ``None``."""
        try:
            doc = await self._collection.find_one({"cache_key": cache_key}, sort=[("created_at", DESCENDING)])
            if doc is None:
                logger.debug("[CACHE] Miss (no entry).")
                return None

            entry = _decode(doc)
        except (PyMongoError, CacheError) as exc:
            logger.warning("[CACHE] Read failed — treating as miss: %s", exc)
            return None

        if not self.is_fresh(entry.created_at, now):
            logger.debug("[CACHE] Miss (stale entry from %s).", entry.created_at.isoformat())
            return None

        logger.info("[CACHE] Hit (entry from %s).", entry.created_at.isoformat())
        return entry


    async def insert(self, cache_key: str, result: SearchPayload, now: datetime | None = None) -> bool:
        """Persist *result* under *cache_key*.  Returns False on failure."""
        document = {"cache_key": cache_key, "result": json.dumps(result, ensure_ascii=False), "created_at": now or datetime.now(timezone.utc)}
        try:
            await self._collection.insert_one(document)
        except PyMongoError as exc:
            logger.error("[CACHE] Write failed — result not cached: %s", exc)
            return False

        logger.info("[CACHE] Stored result (%d chars).", len(document["result"]))
        return True

    # ══════════════════════════════════════════════════════════════════
    #  MAINTENANCE (used by scripts/setup_db.py)
    # ══════════════════════════════════════════════════════════════════

    async def ensure_indexes(self) -> str:
        """Create the compound lookup index; returns its name."""
        name = await self._collection.create_index([("cache_key", ASCENDING), ("created_at", DESCENDING)])
        logger.info("[CACHE] Index ready: %s", name)
        return name


    async def purge_stale(self, now: datetime | None = None) -> int:
        """Delete rows older than the TTL.  Returns the deleted count."""
        cutoff = (now or datetime.now(timezone.utc)) - self._ttl
        result = await self._collection.delete_many({"created_at": {"$lte": cutoff}})
        logger.info("[CACHE] Purged %d stale row(s) older than %s.", result.deleted_count, cutoff.isoformat())
        return result.deleted_count


    async def drop(self) -> None:
        await self._collection.drop()
        logger.warning("[CACHE] Collection dropped.")


def _as_utc(value: datetime) -> datetime:
    # pymongo returns naive datetimes unless the client is tz_aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _decode(doc: Mapping[str, Any]) -> CacheEntry:
    created_at = doc.get("created_at")
    if not isinstance(created_at, datetime):
        raise CacheError(f"Cache row has no valid created_at: {created_at!r}")
    try:
        result = json.loads(doc["result"])
    except (KeyError, TypeError, ValueError) as exc:
        raise CacheError(f"Cache row holds an unreadable result: {exc}") from exc
    return CacheEntry(cache_key=doc.get("cache_key", ""), result=result, created_at=_as_utc(created_at))
