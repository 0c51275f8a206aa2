"""
Redis caching for availability calendars.

CACHING STRATEGY
================

What we cache:
  - Availability calendar responses (JSON-serialized)
  - Cache key pattern: "calendar:{billboard_id}:{start}:{end}:{today}"
    ("today" is part of the key because past days stop being selectable)

Invalidation strategy:
  - Any booking or blocked-date change on a billboard deletes every cached
    calendar of that billboard (prefix SCAN).
  - TTL-based expiry as safety net.

The cached calendar is only a hint for the UI. Approval re-checks overlaps
against the database, so a stale entry can never produce a double booking.
"""

import json
from datetime import date
from typing import Optional

from maddi.core.config import get_settings
from maddi.core.logging import get_logger
from maddi.core.metrics import record_cache_operation
from maddi.infrastructure.redis_client import get_redis

logger = get_logger(__name__)


def _make_calendar_key(billboard_id: int, start: date, end: date, today: date) -> str:
    return f"calendar:{billboard_id}:{start.isoformat()}:{end.isoformat()}:{today.isoformat()}"


async def get_cached_calendar(billboard_id: int, start: date, end: date, today: date) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_calendar_key(billboard_id, start, end, today)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_calendar(billboard_id: int, start: date, end: date, today: date, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _make_calendar_key(billboard_id, start, end, today)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_calendar_cache(billboard_id: int) -> None:
    """Drop every cached calendar of one billboard."""
    client = await get_redis()
    if not client:
        return

    deleted = 0
    async for key in client.scan_iter(match=f"calendar:{billboard_id}:*", count=100):
        await client.delete(key)
        deleted += 1
    logger.info("cache_invalidated", billboard_id=billboard_id, keys_deleted=deleted)


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
