import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """
    Best-effort key-value store with TTL expiry and set membership.

    Every operation is safe to call when the backing store is broken or
    absent: reads degrade to a miss (``None`` / ``[]``) and writes are
    skipped.  Nothing here raises to the caller, so correctness never
    depends on the cache.
    """

    enabled: bool = False

    def __init__(self) -> None:
        self._hits: int = 0
        self._misses: int = 0

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the decoded value for *key*, or None on a miss / error."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store *value* under *key* for *ttl* seconds."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def delete_many(self, keys: list[str]) -> None:
        ...

    @abstractmethod
    async def add_to_set(self, set_key: str, member: str) -> None:
        ...

    @abstractmethod
    async def get_set_members(self, set_key: str) -> list[str]:
        """Return the members of *set_key*; a missing set is an empty list."""

    async def close(self) -> None:
        return None

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for the health endpoint."""
        total = self._hits + self._misses
        return {
            "enabled": self.enabled,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


class NullCacheStore(CacheStore):
    """Always-empty store used when Redis is not configured or unreachable."""

    async def get(self, key: str) -> Any | None:
        self._misses += 1
        return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def delete_many(self, keys: list[str]) -> None:
        return None

    async def add_to_set(self, set_key: str, member: str) -> None:
        return None

    async def get_set_members(self, set_key: str) -> list[str]:
        return []


class RedisCacheStore(CacheStore):
    """
    Cache store backed by a ``redis.asyncio`` client.

    The client must be created with ``decode_responses=True``; values are
    stored as JSON strings.
    """

    enabled = True

    def __init__(self, client: redis.Redis) -> None:
        super().__init__()
        self._redis = client

    async def get(self, key: str) -> Any | None:
        try:
            data = await self._redis.get(key)
        except Exception as exc:
            logger.warning("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            logger.debug("Cache MISS: %s", key)
            self._misses += 1
            return None
        try:
            value = json.loads(data)
        except ValueError as exc:
            logger.warning("Cache entry for key=%r is not valid JSON: %s", key, exc)
            self._misses += 1
            return None
        logger.debug("Cache HIT: %s", key)
        self._hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """
        Serialisation errors and Redis failures are logged but never
        propagated; a cache write failure must never break a request.
        """
        try:
            serialised = json.dumps(value, default=str)
            await self._redis.set(key, serialised, ex=ttl)
            logger.debug("Cache SET: %s (ttl=%ss)", key, ttl)
        except Exception as exc:
            logger.warning("Cache SET error for key=%r: %s", key, exc)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except Exception as exc:
            logger.warning("Cache DELETE error for key=%r: %s", key, exc)

    async def delete_many(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            await self._redis.delete(*keys)
            logger.debug("Cache invalidated %d key(s)", len(keys))
        except Exception as exc:
            logger.warning("Cache DELETE error for %d key(s): %s", len(keys), exc)

    async def add_to_set(self, set_key: str, member: str) -> None:
        try:
            await self._redis.sadd(set_key, member)
        except Exception as exc:
            logger.warning("Cache SADD error for set=%r: %s", set_key, exc)

    async def get_set_members(self, set_key: str) -> list[str]:
        try:
            members = await self._redis.smembers(set_key)
        except Exception as exc:
            logger.warning("Cache SMEMBERS error for set=%r: %s", set_key, exc)
            return []
        return list(members or [])

    async def close(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        try:
            await self._redis.aclose()
        except Exception as exc:
            logger.warning("Failed to close Redis connection: %s", exc)


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

async def connect_cache_store(url: str | None) -> CacheStore:
    """
    Open a Redis-backed store for *url*, falling back to the null store.

    A missing or malformed URL or a failed ping disables caching for the
    lifetime of the process instead of failing startup.
    """
    if not url:
        logger.warning("REDIS_URL is not configured. Cache is disabled.")
        return NullCacheStore()

    client = None
    try:
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        await client.ping()
    except Exception as exc:
        logger.error("Failed to connect to Redis at %s: %s", url, exc)
        if client is not None:
            try:
                await client.aclose()
            except Exception:
                logger.debug("Ignoring error while closing unreachable Redis client")
        return NullCacheStore()

    logger.info("Connected to Redis at %s", url)
    return RedisCacheStore(client)
