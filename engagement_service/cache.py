"""
Redis caching layer for Engagement Service

Only list-style reads are cached here. Like counters and like status are
always read from the database because a rapidly toggled value served stale
would be visible to the user.
"""
import redis.asyncio as redis
from typing import Optional, Any
import json
import logging

from .config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis cache manager for engagement listings"""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Connect to Redis"""
        if not settings.REDIS_ENABLED:
            logger.info("Redis caching is disabled")
            return

        try:
            self.redis = await redis.from_url(
                f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
                password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                encoding="utf-8",
                decode_responses=True,
            )
            # Test connection
            await self.redis.ping()
            logger.info("Connected to Redis successfully")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}. Continuing without cache.")
            self.redis = None

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.close()
            logger.info("Disconnected from Redis")

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        if not self.redis:
            return None

        try:
            value = await self.redis.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.error(f"Error getting cache key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 300):
        """Set value in cache with TTL"""
        if not self.redis:
            return

        try:
            await self.redis.setex(key, ttl, json.dumps(value))
        except Exception as e:
            logger.error(f"Error setting cache key {key}: {e}")

    async def delete_pattern(self, pattern: str):
        """Delete all keys matching pattern"""
        if not self.redis:
            return

        try:
            keys = []
            async for key in self.redis.scan_iter(match=pattern):
                keys.append(key)

            if keys:
                await self.redis.delete(*keys)
                logger.info(f"Deleted {len(keys)} keys matching pattern {pattern}")
        except Exception as e:
            logger.error(f"Error deleting cache pattern {pattern}: {e}")

    def _liked_posts_key(self, user_id: int, page: int, page_size: int) -> str:
        """Generate cache key for one page of a user's liked posts"""
        return f"engagement:liked:{user_id}:{page}:{page_size}"

    async def get_liked_posts(
        self, user_id: int, page: int, page_size: int
    ) -> Optional[dict]:
        """Get cached liked posts page"""
        return await self.get(self._liked_posts_key(user_id, page, page_size))

    async def set_liked_posts(
        self, user_id: int, page: int, page_size: int, data: dict
    ):
        """Cache liked posts page"""
        await self.set(
            self._liked_posts_key(user_id, page, page_size),
            data,
            settings.CACHE_TTL_LIKED_POSTS,
        )

    async def invalidate_liked_posts(self, user_id: int):
        """Drop every cached page of a user's liked posts"""
        await self.delete_pattern(f"engagement:liked:{user_id}:*")


# Global cache instance
cache = RedisCache()


async def get_cache() -> RedisCache:
    """Dependency for getting cache instance"""
    return cache
