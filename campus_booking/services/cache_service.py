"""
Redis caching service for event availability.

CACHING STRATEGY
================

What we cache:
  - GET /events/{id}/availability responses (JSON-serialized)
  - Cache key pattern: "availability:event={event_id}"

Why:
  - Availability is polled by every event page while students decide
  - Serving from Redis avoids taking the event's booking lock for a read

Invalidation strategy:
  - Every booking mutation (book, confirm, cancel, reschedule, sweep)
    deletes the keys of the events it touched
  - Short TTL as safety net for mutations made by other processes

Why this never affects correctness:
  - The booking engine does not read the cache. Seat decisions always
    re-count the ledger under the event's serialization boundary
  - Redis being down only turns every read into a cache miss
"""

import json
from typing import Iterable, Optional

import redis.asyncio as redis
from campus_booking.core.config import get_settings
from campus_booking.core.logging import get_logger
from campus_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

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


def _make_availability_key(event_id: int) -> str:
    return f"availability:event={event_id}"


async def get_cached_availability(event_id: int) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_availability_key(event_id)
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


async def set_cached_availability(event_id: int, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_availability_key(event_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_availability(event_ids: Iterable[int]) -> None:
    client = await get_redis()
    if not client:
        return

    keys = [_make_availability_key(event_id) for event_id in set(event_ids)]
    if not keys:
        return
    try:
        deleted = await client.delete(*keys)
        logger.debug("cache_invalidated", keys_deleted=deleted)
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
