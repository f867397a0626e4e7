"""
Shared cache layer for resource services.

A cacher is optional: services accept ``None`` and skip caching entirely.
Keys are scoped per service as ``<service>.<action>:<hash>`` so that
``clean("<service>.*")`` evicts everything a service has cached.
"""

import copy
import fnmatch
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis

from shared.errors import ServiceException
from shared.logging import get_logger


class Cacher(ABC):
    """Cache layer interface."""

    def __init__(self, default_ttl: Optional[int] = None):
        self.default_ttl = default_ttl

    async def start(self):
        """Start the cacher."""

    async def stop(self):
        """Stop the cacher."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    async def clean(self, pattern: str = "*") -> int:
        """Evict every key matching the glob ``pattern``. Returns the count."""
        ...

    async def health_check(self) -> bool:
        return True


class MemoryCacher(Cacher):
    """Process-local cacher with per-entry TTL."""

    def __init__(self, default_ttl: Optional[int] = None):
        super().__init__(default_ttl)
        self.logger = get_logger("cache.memory")
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._entries[key]
            return None

        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ttl = ttl if ttl is not None else self.default_ttl
        expires_at = time.monotonic() + ttl if ttl else None
        self._entries[key] = (copy.deepcopy(value), expires_at)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clean(self, pattern: str = "*") -> int:
        keys = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in keys:
            del self._entries[key]

        self.logger.debug("Cache cleaned", pattern=pattern, count=len(keys))
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacher(Cacher):
    """Redis-backed cacher shared by every instance of a service."""

    def __init__(self, redis_url: str, default_ttl: Optional[int] = None, prefix: str = "resources:"):
        super().__init__(default_ttl)
        self.redis_url = redis_url
        self.prefix = prefix
        self.logger = get_logger("cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Start the Redis cacher."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis cacher started")

        except Exception as e:
            self.logger.error("Failed to start Redis cacher", error=str(e))
            raise ServiceException("REDIS_START_FAILED", str(e))

    async def stop(self):
        """Stop the Redis cacher."""
        if self.redis:
            await self.redis.close()
            self.logger.info("Redis cacher stopped")

    async def get(self, key: str) -> Optional[Any]:
        try:
            cached_data = await self.redis.get(self.prefix + key)
            if cached_data is None:
                return None
            return json.loads(cached_data)

        except Exception as e:
            self.logger.error("Cache get error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ttl = ttl if ttl is not None else self.default_ttl
        try:
            await self.redis.set(self.prefix + key, json.dumps(value, default=str), ex=ttl or None)
            return True

        except Exception as e:
            self.logger.error("Cache set error", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        return bool(await self.redis.delete(self.prefix + key))

    async def clean(self, pattern: str = "*") -> int:
        keys = [key async for key in self.redis.scan_iter(match=self.prefix + pattern)]
        if keys:
            await self.redis.delete(*keys)

        self.logger.debug("Cache cleaned", pattern=pattern, count=len(keys))
        return len(keys)

    async def health_check(self) -> bool:
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False


def create_cacher(spec: Optional[str], default_ttl: Optional[int] = None) -> Optional[Cacher]:
    """Build the cacher named by ``spec``: empty for none, "memory", or a Redis URL."""
    if not spec:
        return None
    if spec == "memory":
        return MemoryCacher(default_ttl)
    if spec.startswith(("redis://", "rediss://", "unix://")):
        return RedisCacher(spec, default_ttl)

    raise ServiceException("INVALID_CACHER", f"Unknown cacher: {spec}")
