"""
Database connection and operations
"""
import asyncpg
from typing import Optional, List, Dict, Any
from datetime import datetime
import logging

from .config import settings
from .domain.exceptions import TargetNotFoundError
from .domain.models import EngagementRecord, Target
from .domain.repositories import IEngagementRepository

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    user_id INTEGER NOT NULL,
    like_count INTEGER NOT NULL DEFAULT 0 CHECK (like_count >= 0),
    comment_count INTEGER NOT NULL DEFAULT 0 CHECK (comment_count >= 0),
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS likes (
    user_id INTEGER NOT NULL,
    post_id TEXT NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
    created_at TIMESTAMP NOT NULL DEFAULT NOW(),
    CONSTRAINT likes_user_post_unique UNIQUE (user_id, post_id)
);

CREATE INDEX IF NOT EXISTS idx_likes_post_id ON likes (post_id);
CREATE INDEX IF NOT EXISTS idx_likes_user_created ON likes (user_id, created_at DESC);
"""


class Database(IEngagementRepository):
    """PostgreSQL engagement store using asyncpg"""

    def __init__(self):
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Create database connection pool"""
        try:
            self.pool = await asyncpg.create_pool(
                settings.DATABASE_URL,
                min_size=1,
                max_size=settings.DB_POOL_SIZE,
                command_timeout=60,
            )
            logger.info("Database connection pool created successfully")
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    async def disconnect(self):
        """Close database connection pool"""
        if self.pool:
            await self.pool.close()
            logger.info("Database connection pool closed")

    async def init_schema(self):
        """Create engagement tables if they do not exist"""
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA)
        logger.info("Database schema ensured")

    async def fetch_one(self, query: str, *args) -> Optional[Dict[str, Any]]:
        """Fetch a single row"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *args)
            return dict(row) if row else None

    async def fetch_all(self, query: str, *args) -> List[Dict[str, Any]]:
        """Fetch all rows"""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *args)
            return [dict(row) for row in rows]

    def _row_to_target(self, row: Optional[Dict[str, Any]]) -> Optional[Target]:
        """Convert database row to Target model"""
        if not row:
            return None
        return Target(
            id=row["id"],
            owner_id=row["user_id"],
            like_count=row["like_count"],
            comment_count=row["comment_count"],
        )

    # Engagement-specific queries
    async def get_target(self, target_id: str) -> Optional[Target]:
        """Find post by ID"""
        query = """
            SELECT id, user_id, like_count, comment_count
            FROM posts
            WHERE id = $1
        """
        return self._row_to_target(await self.fetch_one(query, target_id))

    async def get_targets(self, target_ids: List[str]) -> Dict[str, Target]:
        """Get several posts keyed by ID"""
        if not target_ids:
            return {}
        query = """
            SELECT id, user_id, like_count, comment_count
            FROM posts
            WHERE id = ANY($1::text[])
        """
        rows = await self.fetch_all(query, target_ids)
        return {row["id"]: self._row_to_target(row) for row in rows}

    async def find_engagement(
        self, actor_id: int, target_id: str
    ) -> Optional[EngagementRecord]:
        """Find the like record for (actor, post)"""
        query = """
            SELECT user_id, post_id, created_at
            FROM likes
            WHERE user_id = $1 AND post_id = $2
        """
        row = await self.fetch_one(query, actor_id, target_id)
        if not row:
            return None
        return EngagementRecord(
            actor_id=row["user_id"],
            target_id=row["post_id"],
            created_at=row["created_at"],
        )

    async def create_engagement(self, actor_id: int, target_id: str) -> bool:
        """Insert like record; False when the unique constraint already holds it"""
        query = """
            INSERT INTO likes (user_id, post_id, created_at)
            VALUES ($1, $2, $3)
            ON CONFLICT ON CONSTRAINT likes_user_post_unique DO NOTHING
            RETURNING user_id
        """
        try:
            result = await self.fetch_one(
                query, actor_id, target_id, datetime.utcnow()
            )
        except asyncpg.ForeignKeyViolationError:
            raise TargetNotFoundError(target_id)
        return result is not None

    async def delete_engagement(self, actor_id: int, target_id: str) -> bool:
        """Delete like record"""
        query = """
            DELETE FROM likes
            WHERE user_id = $1 AND post_id = $2
            RETURNING user_id
        """
        result = await self.fetch_one(query, actor_id, target_id)
        return result is not None

    async def increment_count(self, target_id: str) -> bool:
        """Increment post like counter"""
        query = """
            UPDATE posts
            SET like_count = like_count + 1
            WHERE id = $1
            RETURNING like_count
        """
        result = await self.fetch_one(query, target_id)
        return result is not None

    async def decrement_count(self, target_id: str) -> bool:
        """Decrement post like counter (never below zero)"""
        query = """
            UPDATE posts
            SET like_count = GREATEST(like_count - 1, 0)
            WHERE id = $1
            RETURNING like_count
        """
        result = await self.fetch_one(query, target_id)
        return result is not None

    async def refresh_count(self, target_id: str) -> Optional[int]:
        """Recount likes for the post and store the result on the post"""
        query = """
            UPDATE posts
            SET like_count = (SELECT COUNT(*) FROM likes WHERE post_id = $1)
            WHERE id = $1
            RETURNING like_count
        """
        result = await self.fetch_one(query, target_id)
        return result["like_count"] if result else None

    async def get_engaged_target_ids(
        self, actor_id: int, limit: Optional[int] = None, offset: int = 0
    ) -> List[str]:
        """Get IDs of posts liked by user, newest first"""
        query = """
            SELECT post_id
            FROM likes
            WHERE user_id = $1
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3
        """
        rows = await self.fetch_all(query, actor_id, limit, offset)
        return [row["post_id"] for row in rows]

    async def count_engaged_targets(self, actor_id: int) -> int:
        """Get number of posts liked by user"""
        query = """
            SELECT COUNT(*) as count
            FROM likes
            WHERE user_id = $1
        """
        result = await self.fetch_one(query, actor_id)
        return result["count"] if result else 0


# Global database instance
db = Database()


async def get_db() -> Database:
    """Dependency for getting database instance"""
    return db
