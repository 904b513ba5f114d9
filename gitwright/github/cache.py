"""Key-value stores for installation tokens.

The credential provider talks to a :class:`TokenCache` with two atomic
operations, ``get`` and ``put`` with a TTL, so entries expire on their own
and no extra locking is needed. Two implementations are provided:

- :class:`InMemoryTokenCache` for a single process and for tests.
- :class:`RedisTokenCache` for sharing tokens between API and worker
  processes.

"""

from __future__ import annotations

import datetime as dt
import typing as typ

import msgspec

from gitwright.common.time import utcnow

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from redis.asyncio import Redis


class CachedToken(msgspec.Struct, kw_only=True, frozen=True):
    """Installation token as stored in the cache."""

    token: str
    expires_at: dt.datetime


def encode_cached_token(entry: CachedToken) -> str:
    """Serialise a cache entry to a JSON string."""
    return msgspec.json.encode(entry).decode("utf-8")


def decode_cached_token(raw: str | bytes) -> CachedToken | None:
    """Deserialise a cache entry, treating unreadable values as a miss."""
    try:
        return msgspec.json.decode(raw, type=CachedToken)
    except (msgspec.DecodeError, msgspec.ValidationError):
        return None


class TokenCache(typ.Protocol):
    """Async key-value store with per-entry expiry."""

    async def get(self, key: str) -> str | None:
        """Return the live value for ``key`` or ``None``."""
        ...

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        ...


class InMemoryTokenCache:
    """Process-local :class:`TokenCache` backed by a dict.

    Each provider gets its own instance; there is no module-level cache.
    """

    def __init__(self, *, clock: cabc.Callable[[], dt.datetime] = utcnow) -> None:
        """Create an empty cache that reads the time from ``clock``."""
        self._clock = clock
        self._entries: dict[str, tuple[str, dt.datetime]] = {}

    async def get(self, key: str) -> str | None:
        """Return the value for ``key`` unless it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` until ``ttl_seconds`` from now."""
        self._entries[key] = (
            value,
            self._clock() + dt.timedelta(seconds=ttl_seconds),
        )

    def __len__(self) -> int:
        """Return the number of entries, including any not yet evicted."""
        return len(self._entries)


class RedisTokenCache:
    """:class:`TokenCache` stored in Redis with ``SET key value EX ttl``."""

    def __init__(self, client: Redis) -> None:
        """Wrap an existing ``redis.asyncio`` client."""
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisTokenCache:
        """Connect lazily to the Redis server at ``url``."""
        from redis.asyncio import Redis

        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key``."""
        value = await self._client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` with a Redis-side expiry."""
        await self._client.set(key, value, ex=max(1, ttl_seconds))

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()


__all__ = [
    "CachedToken",
    "InMemoryTokenCache",
    "RedisTokenCache",
    "TokenCache",
    "decode_cached_token",
    "encode_cached_token",
]
