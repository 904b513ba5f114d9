"""Unit tests for installation token caches."""

from __future__ import annotations

import datetime as dt
from unittest import mock

import pytest

from gitwright.github.cache import (
    CachedToken,
    InMemoryTokenCache,
    RedisTokenCache,
    decode_cached_token,
    encode_cached_token,
)


class _Clock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now


class TestInMemoryTokenCache:
    """Tests for ``InMemoryTokenCache``."""

    @pytest.mark.asyncio
    async def test_entries_expire_after_ttl(self) -> None:
        """Values disappear once their TTL has elapsed."""
        clock = _Clock(dt.datetime(2025, 1, 1, tzinfo=dt.UTC))
        cache = InMemoryTokenCache(clock=clock)

        await cache.put("k", "v", ttl_seconds=60)
        assert await cache.get("k") == "v"

        clock.now += dt.timedelta(seconds=60)
        assert await cache.get("k") is None
        assert len(cache) == 0, "Expired entries are evicted on read"

    @pytest.mark.asyncio
    async def test_instances_do_not_share_entries(self) -> None:
        """Each cache owns its own storage."""
        first = InMemoryTokenCache()
        second = InMemoryTokenCache()

        await first.put("k", "v", ttl_seconds=60)

        assert await second.get("k") is None


class TestCachedTokenCodec:
    """Tests for the cache entry encoding."""

    def test_decode_unreadable_value_is_a_miss(self) -> None:
        """Garbage in the cache is treated as absent."""
        assert decode_cached_token("not json") is None
        assert decode_cached_token('{"token": 1}') is None

    def test_encoded_entry_decodes(self) -> None:
        """An encoded entry decodes to the same token."""
        entry = CachedToken(
            token="ghs_x", expires_at=dt.datetime(2025, 1, 1, 1, tzinfo=dt.UTC)
        )
        assert decode_cached_token(encode_cached_token(entry)) == entry


class TestRedisTokenCache:
    """Tests for ``RedisTokenCache`` against a mocked client."""

    @pytest.mark.asyncio
    async def test_put_sets_expiry(self) -> None:
        """Values are written with ``EX`` so Redis expires them."""
        client = mock.AsyncMock()
        cache = RedisTokenCache(client)

        await cache.put("k", "v", ttl_seconds=0)

        client.set.assert_awaited_once_with("k", "v", ex=1)

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self) -> None:
        """Byte responses are decoded to text."""
        client = mock.AsyncMock()
        client.get.return_value = b"value"
        cache = RedisTokenCache(client)

        assert await cache.get("k") == "value"

    @pytest.mark.asyncio
    async def test_aclose_closes_client(self) -> None:
        """Closing the cache closes the connection pool."""
        client = mock.AsyncMock()
        await RedisTokenCache(client).aclose()
        client.aclose.assert_awaited_once()
