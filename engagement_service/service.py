"""
Engagement Service business logic
"""
from typing import List
from fastapi import HTTPException, status
import logging

from .cache import RedisCache
from .config import settings
from .domain.exceptions import TargetNotFoundError
from .domain.models import EngagementState, ToggleOutcome
from .domain.repositories import IEngagementRepository
from .kafka_producer import KafkaProducerManager
from .schemas import (
    ToggleResponse,
    LikeStatusResponse,
    LikedPostsResponse,
    TargetCounts,
    EngagementSnapshotResponse,
)

logger = logging.getLogger(__name__)


def _not_found(target_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Post {target_id} not found",
    )


class EngagementService:
    """Business logic for likes"""

    def __init__(
        self,
        repo: IEngagementRepository,
        cache: RedisCache,
        kafka: KafkaProducerManager,
    ):
        self.repo = repo
        self.cache = cache
        self.kafka = kafka

    async def toggle_like(self, actor_id: int, target_id: str) -> ToggleResponse:
        """
        Flip the caller's like on a post

        Safe to call concurrently and repeatedly. A call that loses the race
        to a duplicate request reports the same truthful state as the winner
        instead of failing.

        Args:
            actor_id: User toggling the like
            target_id: Post ID

        Returns:
            ToggleResponse with the authoritative state and count

        Raises:
            HTTPException: 404 if the post does not exist
        """
        target = await self.repo.get_target(target_id)
        if not target:
            raise _not_found(target_id)

        try:
            existing = await self.repo.find_engagement(actor_id, target_id)
            if existing is None:
                outcome = await self._engage(actor_id, target_id)
            else:
                outcome = await self._disengage(actor_id, target_id)
        except TargetNotFoundError:
            logger.warning(f"Post {target_id} disappeared during like toggle")
            raise _not_found(target_id)

        if outcome.performed:
            await self.cache.invalidate_liked_posts(actor_id)
            if outcome.engaged:
                await self.kafka.publish_post_liked(target_id, actor_id, outcome.count)
                if not target.is_owner(actor_id):
                    await self.kafka.publish_like_notification(
                        target.owner_id, target_id, actor_id
                    )
            else:
                await self.kafka.publish_post_unliked(target_id, actor_id, outcome.count)

        return ToggleResponse(engaged=outcome.engaged, count=outcome.count)

    async def _engage(self, actor_id: int, target_id: str) -> ToggleOutcome:
        created = await self.repo.create_engagement(actor_id, target_id)
        if created:
            if not await self.repo.increment_count(target_id):
                raise TargetNotFoundError(target_id)
        else:
            logger.warning(
                f"Like already exists for post {target_id} by user {actor_id} (race condition handled)"
            )

        count = await self._authoritative_count(target_id)
        if created:
            logger.info(f"Liked post {target_id} by user {actor_id}, new count: {count}")
        return ToggleOutcome(
            target_id=target_id,
            state=EngagementState.ENGAGED,
            count=count,
            performed=created,
        )

    async def _disengage(self, actor_id: int, target_id: str) -> ToggleOutcome:
        removed = await self.repo.delete_engagement(actor_id, target_id)
        if removed:
            if not await self.repo.decrement_count(target_id):
                raise TargetNotFoundError(target_id)
        else:
            logger.warning(
                f"Like was already deleted for post {target_id} by user {actor_id} (race condition handled)"
            )

        count = await self._authoritative_count(target_id)
        if removed:
            logger.info(f"Unliked post {target_id} by user {actor_id}, new count: {count}")
        return ToggleOutcome(
            target_id=target_id,
            state=EngagementState.NOT_ENGAGED,
            count=count,
            performed=removed,
        )

    async def _authoritative_count(self, target_id: str) -> int:
        count = await self.repo.refresh_count(target_id)
        if count is None:
            raise TargetNotFoundError(target_id)
        return count

    async def get_like_status(self, actor_id: int, target_id: str) -> LikeStatusResponse:
        """
        Get the caller's like state and the post's like count

        Raises:
            HTTPException: 404 if the post does not exist
        """
        target = await self.repo.get_target(target_id)
        if not target:
            raise _not_found(target_id)

        existing = await self.repo.find_engagement(actor_id, target_id)
        return LikeStatusResponse(
            target_id=target_id,
            engaged=existing is not None,
            count=target.like_count,
        )

    async def get_liked_posts(
        self, actor_id: int, page: int = 1, page_size: int = 20
    ) -> LikedPostsResponse:
        """
        Get posts liked by the caller

        Args:
            actor_id: User ID
            page: Page number (1-indexed)
            page_size: Items per page

        Returns:
            LikedPostsResponse with one page of post IDs
        """
        page = max(1, page)
        page_size = min(page_size, settings.MAX_PAGE_SIZE)
        offset = (page - 1) * page_size

        cached = await self.cache.get_liked_posts(actor_id, page, page_size)
        if cached:
            return LikedPostsResponse(**cached)

        target_ids = await self.repo.get_engaged_target_ids(
            actor_id, limit=page_size + 1, offset=offset
        )

        has_more = len(target_ids) > page_size
        if has_more:
            target_ids = target_ids[:page_size]

        total = await self.repo.count_engaged_targets(actor_id)

        response = LikedPostsResponse(
            target_ids=target_ids,
            total=total,
            page=page,
            page_size=page_size,
            has_more=has_more,
        )

        await self.cache.set_liked_posts(actor_id, page, page_size, response.model_dump())

        return response

    async def get_snapshot(
        self, actor_id: int, target_ids: List[str]
    ) -> EngagementSnapshotResponse:
        """
        Get everything a client view needs before its first toggle

        Returns the caller's full set of liked post IDs plus the counters of
        the requested posts. Unknown post IDs are left out of `counts`.
        """
        if len(target_ids) > settings.MAX_SNAPSHOT_TARGETS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"At most {settings.MAX_SNAPSHOT_TARGETS} posts per snapshot",
            )

        engaged = await self.repo.get_engaged_target_ids(actor_id)
        targets = await self.repo.get_targets(list(dict.fromkeys(target_ids)))

        return EngagementSnapshotResponse(
            actor_id=actor_id,
            engaged_target_ids=engaged,
            counts={
                target_id: TargetCounts(
                    like_count=target.like_count,
                    comment_count=target.comment_count,
                )
                for target_id, target in targets.items()
            },
        )
