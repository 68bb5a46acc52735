"""Cache Manager — Redis-backed caching for research packs and node outputs.

Two disjoint keyspaces are used:

- ``research:{idea_id}:{research_hash}`` — a whole ResearchPack
- ``node:{idea_id}:{node_name}:{research_hash}`` — one validated node output

The cache is best-effort: backend failures are logged at debug level and
behave like a miss, never like an error.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import time
from typing import Any

import redis.asyncio as aioredis

from ideascope.config.settings import CacheSettings

logger = logging.getLogger(__name__)


def research_cache_key(idea_id: str, research_hash: str) -> str:
    return f"research:{idea_id}:{research_hash}"


def node_cache_key(idea_id: str, node_name: str, research_hash: str) -> str:
    return f"node:{idea_id}:{node_name}:{research_hash}"


class CacheManager:
    """Key-value cache shared by the research and analysis orchestrators.

    Backed by Redis when configured and reachable, otherwise by a process-local
    dict whose entries expire lazily on read.
    """

    def __init__(self, settings: CacheSettings | None = None) -> None:
        self.settings = settings or CacheSettings()
        self._client: Any = None
        self._memory_cache: dict[str, tuple[Any, float | None]] = {}

    async def initialize(self) -> None:
        """Connect to Redis, or settle on the in-memory backend."""
        if self.settings.backend == "redis":
            try:
                self._client = aioredis.from_url(
                    self.settings.redis_url,
                    decode_responses=True,
                )
                await self._client.ping()
                logger.info("Connected to Redis cache at %s", self.settings.redis_url)
            except Exception:
                logger.warning("Redis at %s unreachable, using in-memory cache", self.settings.redis_url, exc_info=True)
                self._client = None
                self.settings.backend = "memory"
        else:
            logger.info("Cache backend: memory")

    async def shutdown(self) -> None:
        """Release the Redis connection, if any."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def _use_redis(self) -> bool:
        return self.settings.backend == "redis" and self._client is not None

    async def get(self, key: str) -> Any | None:
        """Return the value stored under *key*, or None on a miss, expiry or backend error."""
        try:
            if self._use_redis:
                value = await self._client.get(key)
                return json.loads(value) if value else None
            entry = self._memory_cache.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= time.monotonic():
                self._memory_cache.pop(key, None)
                return None
            return value
        except Exception:
            logger.debug("Cache get failed for key: %s", key, exc_info=True)
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*, replacing any previous value.

        Args:
            key: A research or node cache key.
            value: JSON-serializable value.
            ttl: Seconds until expiry; falsy keeps the entry indefinitely.
        """
        try:
            serialized = json.dumps(value, default=str)
            if self._use_redis:
                if ttl:
                    await self._client.setex(key, ttl, serialized)
                else:
                    await self._client.set(key, serialized)
            else:
                expires_at = time.monotonic() + ttl if ttl else None
                # Stored as a JSON round-trip so both backends return equal values.
                self._memory_cache[key] = (json.loads(serialized), expires_at)
        except Exception:
            logger.debug("Cache set failed for key: %s", key, exc_info=True)

    async def delete(self, key: str) -> None:
        """Drop *key* if present."""
        try:
            if self._use_redis:
                await self._client.delete(key)
            else:
                self._memory_cache.pop(key, None)
        except Exception:
            logger.debug("Cache delete failed for key: %s", key, exc_info=True)

    async def invalidate(self, pattern: str) -> int:
        """Delete every key matching a glob *pattern* (e.g. ``node:idea_1:*``).

        Returns:
            Number of keys removed.
        """
        try:
            if self._use_redis:
                keys = [key async for key in self._client.scan_iter(match=pattern)]
                if keys:
                    await self._client.delete(*keys)
                return len(keys)
            keys = [key for key in self._memory_cache if fnmatch.fnmatchcase(key, pattern)]
            for key in keys:
                del self._memory_cache[key]
            return len(keys)
        except Exception:
            logger.debug("Cache invalidate failed for pattern: %s", pattern, exc_info=True)
            return 0

    async def clear(self) -> None:
        """Drop every entry (``FLUSHDB`` on Redis)."""
        try:
            if self._use_redis:
                await self._client.flushdb()
            else:
                self._memory_cache.clear()
        except Exception:
            logger.debug("Cache clear failed", exc_info=True)
