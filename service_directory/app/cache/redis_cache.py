"""
Redis cache backend for the Directory service.
"""

from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import CacheError, CacheKeyNotFoundError


class RedisCache:
    """Redis-backed look-aside cache for records and listings."""

    def __init__(self, redis_url: str, namespace: str = "directory"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("directory.cache.redis")
        self.redis: Optional[redis.Redis] = None

    def _get_redis(self) -> redis.Redis:
        """Get Redis connection, creating the client on first use."""
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )
        return self.redis

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def start(self):
        """Start the Redis cache.

        An unreachable Redis does not stop the service; cache operations
        fail individually and the record service degrades to the store.
        """
        client = self._get_redis()
        try:
            await client.ping()
            self.logger.info("Redis cache started", redis_url=self.redis_url)
        except RedisError as e:
            self.logger.warning("Redis unavailable at startup", error=str(e))

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache stopped")

    async def get(self, key: str) -> Optional[Any]:
        """Get a cached value."""
        try:
            return await self._get_redis().get(self._make_key(key))
        except RedisError as e:
            raise CacheError("get", str(e), {"key": key}) from e

    async def set(self, key: str, value: Any) -> None:
        """Store a value without expiry."""
        try:
            await self._get_redis().set(self._make_key(key), value)
        except RedisError as e:
            raise CacheError("set", str(e), {"key": key}) from e

    async def delete(self, key: str) -> None:
        """Delete a cached value."""
        try:
            removed = await self._get_redis().delete(self._make_key(key))
        except RedisError as e:
            raise CacheError("delete", str(e), {"key": key}) from e

        if not removed:
            raise CacheKeyNotFoundError(key)

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self._get_redis().ping()
            return True
        except RedisError:
            return False
