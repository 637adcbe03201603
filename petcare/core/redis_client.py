"""Redis client configuration and cache utilities."""

import json
from typing import Any, cast

import redis
import structlog

from petcare.config import Settings

logger = structlog.get_logger()


def create_redis_client(config: Settings) -> redis.Redis:
    """
    Build a Redis client from settings.

    Args:
        config: Application settings

    Returns:
        Redis client instance (connections are opened lazily)
    """
    return redis.Redis(
        host=config.redis_host,
        port=config.redis_port,
        username=config.redis_username,
        password=config.redis_password or None,
        decode_responses=config.redis_decode_responses,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )


class CacheManager:
    """
    Redis-based cache manager.

    Every operation fails soft: a cache outage degrades to a miss and never
    fails the request that touched it.
    """

    def __init__(self, redis_client: redis.Redis):
        """Initialize cache manager with Redis client."""
        self.redis = redis_client

    def ping(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.redis.ping())
        except Exception:
            return False

    def close(self) -> None:
        """Release the underlying connection pool."""
        try:
            self.redis.close()
        except Exception as e:
            logger.warning("redis_close_failed", error=str(e))

    def delete(self, *keys: str) -> bool:
        """Delete keys from cache."""
        if not keys:
            return True
        try:
            self.redis.delete(*keys)
            return True
        except Exception as e:
            logger.warning("cache_delete_failed", keys=list(keys), error=str(e))
            return False

    def incr(self, key: str, ttl: int | None = None) -> int | None:
        """
        Increment an integer counter, creating it at 1.

        Args:
            key: Counter key
            ttl: Optional expiry refreshed on every increment

        Returns:
            New value, or None if Redis is unavailable
        """
        try:
            value = cast(int, self.redis.incr(key))
            if ttl:
                self.redis.expire(key, ttl)
            return value
        except Exception as e:
            logger.warning("cache_incr_failed", key=key, error=str(e))
            return None

    def get_json(self, key: str) -> Any | None:
        """
        Get JSON value from cache and deserialize.

        Args:
            key: Cache key

        Returns:
            Deserialized object or None
        """
        try:
            value = cast(str | None, self.redis.get(key))
            if value:
                return json.loads(value)
            return None
        except Exception:
            return None

    def set_json(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Serialize and set JSON value in cache.

        Args:
            key: Cache key
            value: Value to serialize and cache
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        try:
            json_value = json.dumps(value, default=str)
            if ttl:
                self.redis.setex(key, ttl, json_value)
            else:
                self.redis.set(key, json_value)
            return True
        except Exception:
            return False

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Redis key pattern (e.g., 'appointments:list:*')

        Returns:
            Number of keys deleted
        """
        try:
            keys = list(self.redis.scan_iter(match=pattern))
            if keys:
                return cast(int, self.redis.delete(*keys))
            return 0
        except Exception:
            return 0
