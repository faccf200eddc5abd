import json
import asyncio
import fnmatch
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
import time
import logging

import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)


def _expiry(ttl: Optional[int]) -> Optional[float]:
    # ttl=None falls back to the default, ttl=0 never expires
    if ttl is None:
        ttl = settings.CACHE_TTL
    return time.monotonic() + ttl if ttl else None


class CacheBackend(ABC):
    """Stores JSON-compatible values (rendered leaderboard pages) by string key.

    Keys are matched with glob patterns on invalidation, so callers must keep
    ``*?[]`` out of the literal parts of a key.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]: ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int: ...

    @abstractmethod
    async def clear(self) -> bool: ...


class MemoryCacheBackend(CacheBackend):
    """Per-process cache, used when no Redis URL is configured."""

    def __init__(self):
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        async with self._lock:
            self._entries[key] = (value, _expiry(ttl))
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        async with self._lock:
            matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in matched:
                del self._entries[key]
            return len(matched)

    async def clear(self) -> bool:
        async with self._lock:
            self._entries.clear()
            return True


class RedisCacheBackend(CacheBackend):
    """Shared cache for multi-process deployments.

    Every key is stored under ``CACHE_KEY_PREFIX`` so ``clear`` only removes
    this service's entries. Redis errors are logged and reported as misses;
    a read then falls through to a rebuild.
    """

    def __init__(self, redis_url: str, prefix: str = settings.CACHE_KEY_PREFIX):
        self.redis = redis.from_url(redis_url, decode_responses=True)
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(self._key(key))
        except redis.RedisError as e:
            logger.error(f"Redis GET failed for {key}: {e}")
            return None
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if ttl is None:
            ttl = settings.CACHE_TTL
        try:
            await self.redis.set(self._key(key), json.dumps(value, default=str), ex=ttl or None)
            return True
        except redis.RedisError as e:
            logger.error(f"Redis SET failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self.redis.delete(self._key(key)) > 0
        except redis.RedisError as e:
            logger.error(f"Redis DELETE failed for {key}: {e}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        try:
            keys = [key async for key in self.redis.scan_iter(match=self._key(pattern))]
            return await self.redis.delete(*keys) if keys else 0
        except redis.RedisError as e:
            logger.error(f"Redis pattern delete failed for {pattern}: {e}")
            return 0

    async def clear(self) -> bool:
        return await self.delete_pattern("*") >= 0


def create_cache_backend() -> CacheBackend:
    if settings.REDIS_URL:
        logger.info("Initializing Redis cache backend")
        return RedisCacheBackend(settings.REDIS_URL)

    logger.info("Using in-memory cache backend")
    return MemoryCacheBackend()


class CacheManager:
    """Thin facade over the configured backend.

    A disabled cache behaves like a cache that never hits, so callers keep a
    single code path. Deletes still go through so nothing stale survives a
    toggle.
    """

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    @property
    def enabled(self) -> bool:
        return settings.CACHE_ENABLED

    async def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        return await self.backend.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        return await self.backend.set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        return await self.backend.delete(key)

    async def delete_pattern(self, pattern: str) -> int:
        return await self.backend.delete_pattern(pattern)

    async def clear(self) -> bool:
        return await self.backend.clear()


cache = CacheManager(create_cache_backend())
