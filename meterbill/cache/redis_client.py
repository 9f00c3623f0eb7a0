"""
Redis client for the latest-reading cache.

Provides helpers for creating Redis connections and reading, writing and
invalidating the cached latest reading shown on the dashboard. Every
operation is best-effort: connection failures are logged and never
propagate. Energy aggregates and peak checks do not use this cache.

CHANGELOG:
- 2026-10-17: Treat an undecodable cached value as a miss
- 2026-10-16: Add get/set helpers for the latest-reading endpoint
- 2026-10-15: Initial creation
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from meterbill.config import get_settings

logger = logging.getLogger(__name__)

LATEST_READING_KEY = "readings:latest"


async def get_redis() -> redis.Redis:
    """Create an async Redis client from ``AppSettings.redis_url``.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(get_settings().redis_url)


async def get_cached_latest() -> dict[str, Any] | None:
    """Return the cached latest reading, or None on miss or Redis failure."""
    try:
        client = await get_redis()
        try:
            cached = await client.get(LATEST_READING_KEY)
        finally:
            await client.aclose()
        if cached is None:
            return None
        return json.loads(cached)
    except Exception:
        logger.warning(
            "Redis read failed for key %s, falling back to DB",
            LATEST_READING_KEY,
            exc_info=True,
        )
        return None


async def cache_latest(reading: dict[str, Any], ttl_s: int) -> None:
    """Store the serialised latest reading with a TTL (best-effort)."""
    try:
        client = await get_redis()
        try:
            await client.set(LATEST_READING_KEY, json.dumps(reading), ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis write failed for key %s",
            LATEST_READING_KEY,
            exc_info=True,
        )


async def invalidate_latest_cache() -> None:
    """Delete the cached latest reading after ingestion or correction.

    Best-effort: if Redis is unavailable the error is logged and ingestion
    proceeds; the TTL bounds any staleness.
    """
    try:
        client = await get_redis()
        try:
            await client.delete(LATEST_READING_KEY)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache key %s",
            LATEST_READING_KEY,
            exc_info=True,
        )
