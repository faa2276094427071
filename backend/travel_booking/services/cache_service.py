"""
Redis caching service for trip search results.

CACHING STRATEGY
================

What we cache:
  - Trip search responses (JSON-serialized, including seat availability)
  - Cache key pattern: "trips:list:origin={o}&destination={d}&date={date}"

Why:
  - Browsing and searching trips is by far the most frequent request
  - Results change only when a trip is edited or a seat is claimed/released

Invalidation strategy:
  - On trip create/update/delete: delete all trip list keys
  - On booking or cancellation: delete all trip list keys (seat flags changed)
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  All trip list keys share the "trips:list:" prefix so they can be SCANned
  and deleted together.

Why NOT cache individual trips:
  - The seat picker needs real-time seat flags; the seat store never reads
    from the cache, so a stale entry can only mislead a listing, never cause
    a double booking

Redis is optional: when disabled or unreachable every call degrades to a
cache miss / no-op.
"""

import json
from datetime import date
from typing import Optional

import redis.asyncio as redis
from travel_booking.core.config import get_settings
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

TRIP_LIST_PREFIX = "trips:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_trip_list_key(
    origin: Optional[str],
    destination: Optional[str],
    departure_date: Optional[date],
) -> str:
    o = (origin or "").strip().lower()
    d = (destination or "").strip().lower()
    day = departure_date.isoformat() if departure_date else ""
    return f"{TRIP_LIST_PREFIX}origin={o}&destination={d}&date={day}"


async def get_cached_trips(
    origin: Optional[str],
    destination: Optional[str],
    departure_date: Optional[date],
) -> Optional[dict]:
    """Retrieve cached trip search response."""
    client = await get_redis()
    if not client:
        return None

    key = make_trip_list_key(origin, destination, departure_date)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_trips(
    origin: Optional[str],
    destination: Optional[str],
    departure_date: Optional[date],
    data: dict,
) -> None:
    """Cache trip search response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = make_trip_list_key(origin, destination, departure_date)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_trip_cache() -> None:
    """Invalidate all cached trip searches."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{TRIP_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


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
