"""
Redis caching layer for the Catalog Service.
"""

from typing import Dict, Any, Optional

import redis.asyncio as redis

from shared.logging import get_logger
from ..interfaces import CacheOutcome


class RedisCacheStore:
    """Redis-backed cache store.

    Every operation is best-effort: connection and command errors are logged
    and reported as a miss (``get``) or a failed ``CacheOutcome`` (writes and
    deletions), never raised to the caller.
    """

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.logger = get_logger("catalog.cache.redis")
        self._redis: Optional[redis.Redis] = client

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )
        return self._redis

    async def start(self) -> bool:
        """Connect to Redis; a failed connection leaves reads falling through to the store."""
        try:
            client = await self._get_redis()
            await client.ping()
            self.logger.info("Redis cache started")
            return True
        except Exception as e:
            self.logger.warning("Redis cache unavailable at start-up", error=str(e))
            return False

    async def stop(self):
        """Stop the Redis cache."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis cache stopped")

    async def get(self, key: str) -> Optional[str]:
        """Return the cached payload, or None on a miss or any cache error."""
        try:
            client = await self._get_redis()
            return await client.get(key)
        except Exception as e:
            self.logger.error("Error getting cache", key=key, error=str(e))
            return None

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> CacheOutcome:
        """Store a payload with a fixed expiry."""
        try:
            client = await self._get_redis()
            await client.setex(key, ttl_seconds, value)
            self.logger.debug("Cache populated", key=key, ttl=ttl_seconds)
            return CacheOutcome.success("set", key)
        except Exception as e:
            self.logger.error("Error setting cache", key=key, error=str(e))
            return CacheOutcome.failure("set", key, str(e))

    async def delete(self, key: str) -> CacheOutcome:
        """Delete a single key."""
        try:
            client = await self._get_redis()
            removed = await client.delete(key)
            return CacheOutcome.success("delete", key, removed=removed)
        except Exception as e:
            self.logger.error("Error deleting cache key", key=key, error=str(e))
            return CacheOutcome.failure("delete", key, str(e))

    async def delete_matching(self, pattern: str) -> CacheOutcome:
        """Delete every key matching a glob-style pattern."""
        try:
            client = await self._get_redis()
            keys = [key async for key in client.scan_iter(match=pattern)]
            removed = await client.delete(*keys) if keys else 0
            return CacheOutcome.success("delete_matching", pattern, removed=removed)
        except Exception as e:
            self.logger.error("Error deleting cache keys", pattern=pattern, error=str(e))
            return CacheOutcome.failure("delete_matching", pattern, str(e))

    async def get_cache_stats(self, pattern: str = "foods*") -> Dict[str, Any]:
        """Get cache statistics."""
        try:
            client = await self._get_redis()
            info = await client.info()
            keys = [key async for key in client.scan_iter(match=pattern)]

            return {
                "redis_version": info.get("redis_version"),
                "used_memory": info.get("used_memory_human"),
                "keyspace_hits": info.get("keyspace_hits"),
                "keyspace_misses": info.get("keyspace_misses"),
                "catalog_keys": len(keys),
                "hit_rate": self._calculate_hit_rate(info)
            }

        except Exception as e:
            self.logger.error("Error getting cache stats", error=str(e))
            return {}

    def _calculate_hit_rate(self, info: Dict[str, Any]) -> float:
        """Calculate cache hit rate."""
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        total = hits + misses

        if total == 0:
            return 0.0

        return hits / total

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            client = await self._get_redis()
            await client.ping()
            return True
        except Exception:
            return False
