"""
Unit tests for the latest-reading cache helpers.

Tests verify:
- A cached value is decoded back to the reading dict.
- A miss, an unreachable Redis or an undecodable value all read as None.
- Writes and invalidations never raise.

CHANGELOG:
- 2026-10-17: Initial creation

TODO:
- None
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from meterbill.cache.redis_client import (
    LATEST_READING_KEY,
    cache_latest,
    get_cached_latest,
    invalidate_latest_cache,
)

READING = {"ts": "2025-10-02T10:00:00+00:00", "active_power_total": 4.2}


def _redis_client(**methods: object) -> AsyncMock:
    client = AsyncMock()
    for name, value in methods.items():
        setattr(client, name, value)
    return client


class TestGetCachedLatest:
    """Tests for reading the cached latest reading."""

    @pytest.mark.asyncio
    async def test_hit_is_decoded(self) -> None:
        client = _redis_client(get=AsyncMock(return_value=json.dumps(READING).encode()))
        with patch("meterbill.cache.redis_client.get_redis", AsyncMock(return_value=client)):
            assert await get_cached_latest() == READING
        client.get.assert_awaited_once_with(LATEST_READING_KEY)
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_miss(self) -> None:
        client = _redis_client(get=AsyncMock(return_value=None))
        with patch("meterbill.cache.redis_client.get_redis", AsyncMock(return_value=client)):
            assert await get_cached_latest() is None

    @pytest.mark.asyncio
    async def test_corrupt_value_falls_back(self) -> None:
        client = _redis_client(get=AsyncMock(return_value=b"{not json"))
        with patch("meterbill.cache.redis_client.get_redis", AsyncMock(return_value=client)):
            assert await get_cached_latest() is None

    @pytest.mark.asyncio
    async def test_connection_error_falls_back(self) -> None:
        client = _redis_client(get=AsyncMock(side_effect=RedisConnectionError("down")))
        with patch("meterbill.cache.redis_client.get_redis", AsyncMock(return_value=client)):
            assert await get_cached_latest() is None
        client.aclose.assert_awaited_once()


class TestWrites:
    """Tests for best-effort cache writes."""

    @pytest.mark.asyncio
    async def test_cache_latest_sets_ttl(self) -> None:
        client = _redis_client()
        with patch("meterbill.cache.redis_client.get_redis", AsyncMock(return_value=client)):
            await cache_latest(READING, 5)
        client.set.assert_awaited_once_with(LATEST_READING_KEY, json.dumps(READING), ex=5)

    @pytest.mark.asyncio
    async def test_invalidate_swallows_errors(self) -> None:
        client = _redis_client(delete=AsyncMock(side_effect=RedisConnectionError("down")))
        with patch("meterbill.cache.redis_client.get_redis", AsyncMock(return_value=client)):
            await invalidate_latest_cache()
