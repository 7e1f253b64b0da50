"""Shared fixtures and in-memory fakes."""

import asyncio
import itertools
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from engagement_client.schemas import EngagementSnapshot, TargetCounts, ToggleResult
from engagement_service.cache import RedisCache
from engagement_service.domain.exceptions import TargetNotFoundError
from engagement_service.domain.models import EngagementRecord, Target
from engagement_service.domain.repositories import IEngagementRepository
from engagement_service.kafka_producer import KafkaProducerManager
from engagement_service.service import EngagementService


class InMemoryEngagementRepository(IEngagementRepository):
    """
    Engagement store backed by dicts.

    The (actor, target) dict key plays the role of the unique constraint.
    `rendezvous` makes that many concurrent callers of find_engagement wait
    for each other after reading, so every one of them acts on the same stale
    read. `after_find` runs once after the next read, to simulate another
    process acting in between.
    """

    def __init__(self):
        self.posts: Dict[str, Target] = {}
        self.likes: Dict[Tuple[int, str], EngagementRecord] = {}
        self.rendezvous: Optional[int] = None
        self.after_find: Optional[Callable[[], None]] = None
        self._arrived = 0
        self._released: Optional[asyncio.Event] = None
        self._clock = itertools.count()

    def add_post(self, post_id: str, owner_id: int, like_count: int = 0, comment_count: int = 0):
        self.posts[post_id] = Target(
            id=post_id, owner_id=owner_id, like_count=like_count, comment_count=comment_count
        )

    def add_like(self, actor_id: int, post_id: str):
        self.likes[(actor_id, post_id)] = EngagementRecord(
            actor_id=actor_id,
            target_id=post_id,
            created_at=datetime(2024, 1, 1) + timedelta(seconds=next(self._clock)),
        )

    def like_count_of(self, post_id: str) -> int:
        return sum(1 for (_, target_id) in self.likes if target_id == post_id)

    async def _wait_for_peers(self):
        if self._released is None:
            self._released = asyncio.Event()
        self._arrived += 1
        if self._arrived >= self.rendezvous:
            self._released.set()
        await self._released.wait()

    async def get_target(self, target_id: str) -> Optional[Target]:
        target = self.posts.get(target_id)
        if target is None:
            return None
        return Target(**vars(target))

    async def get_targets(self, target_ids: List[str]) -> Dict[str, Target]:
        return {
            target_id: Target(**vars(self.posts[target_id]))
            for target_id in target_ids
            if target_id in self.posts
        }

    async def find_engagement(self, actor_id: int, target_id: str) -> Optional[EngagementRecord]:
        record = self.likes.get((actor_id, target_id))
        if self.rendezvous:
            await self._wait_for_peers()
        if self.after_find is not None:
            hook, self.after_find = self.after_find, None
            hook()
        return record

    async def create_engagement(self, actor_id: int, target_id: str) -> bool:
        if target_id not in self.posts:
            raise TargetNotFoundError(target_id)
        if (actor_id, target_id) in self.likes:
            return False
        self.add_like(actor_id, target_id)
        return True

    async def delete_engagement(self, actor_id: int, target_id: str) -> bool:
        return self.likes.pop((actor_id, target_id), None) is not None

    async def increment_count(self, target_id: str) -> bool:
        target = self.posts.get(target_id)
        if target is None:
            return False
        target.like_count += 1
        return True

    async def decrement_count(self, target_id: str) -> bool:
        target = self.posts.get(target_id)
        if target is None:
            return False
        target.like_count = max(target.like_count - 1, 0)
        return True

    async def refresh_count(self, target_id: str) -> Optional[int]:
        target = self.posts.get(target_id)
        if target is None:
            return None
        target.like_count = self.like_count_of(target_id)
        return target.like_count

    async def get_engaged_target_ids(
        self, actor_id: int, limit: Optional[int] = None, offset: int = 0
    ) -> List[str]:
        records = sorted(
            (record for (actor, _), record in self.likes.items() if actor == actor_id),
            key=lambda record: record.created_at,
            reverse=True,
        )
        ids = [record.target_id for record in records][offset:]
        return ids if limit is None else ids[:limit]

    async def count_engaged_targets(self, actor_id: int) -> int:
        return sum(1 for (actor, _) in self.likes if actor == actor_id)


class RecordingKafkaProducer(KafkaProducerManager):
    """Kafka producer that keeps published events in memory"""

    def __init__(self):
        super().__init__()
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    async def publish_event(self, topic: str, key: str, event_data: Dict[str, Any]):
        self.events.append((topic, key, event_data))

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [data for _, _, data in self.events if data["event_type"] == event_type]


@pytest.fixture
def repo() -> InMemoryEngagementRepository:
    repository = InMemoryEngagementRepository()
    repository.add_post("post-1", owner_id=99)
    for actor_id in range(100, 105):
        repository.add_like(actor_id, "post-1")
    repository.posts["post-1"].like_count = 5
    return repository


@pytest.fixture
def kafka() -> RecordingKafkaProducer:
    return RecordingKafkaProducer()


@pytest.fixture
def redis_cache() -> RedisCache:
    # Never connected: every cache call is a miss or a no-op
    return RedisCache()


@pytest.fixture
def service(repo, redis_cache, kafka) -> EngagementService:
    return EngagementService(repo, redis_cache, kafka)


class FakeToggleAPI:
    """
    Stand-in for EngagementAPI holding the server's truth in memory.

    `hold` makes every toggle wait on a future the test resolves, in order
    to control when each response arrives. `error` makes every toggle fail.
    """

    def __init__(self, counts: Dict[str, int], liked=(), comment_counts: Optional[Dict[str, int]] = None):
        self.counts = dict(counts)
        self.liked = set(liked)
        self.comment_counts = dict(comment_counts or {})
        self.error: Optional[Exception] = None
        self.snapshot_error: Optional[Exception] = None
        self.hold = False
        self.pending: List[asyncio.Future] = []
        self.toggle_calls = 0
        self.snapshot_calls = 0

    def _flip(self, target_id: str):
        if target_id in self.liked:
            self.liked.discard(target_id)
            self.counts[target_id] = max(0, self.counts.get(target_id, 0) - 1)
        else:
            self.liked.add(target_id)
            self.counts[target_id] = self.counts.get(target_id, 0) + 1
        return ToggleResult(engaged=target_id in self.liked, count=self.counts[target_id])

    async def toggle_like(self, target_id: str):
        self.toggle_calls += 1
        if self.hold:
            future = asyncio.get_running_loop().create_future()
            self.pending.append(future)
            return await future
        if self.error is not None:
            raise self.error
        return self._flip(target_id)

    async def get_snapshot(self, target_ids: List[str]):
        self.snapshot_calls += 1
        if self.snapshot_error is not None:
            raise self.snapshot_error
        return EngagementSnapshot(
            actor_id=1,
            engaged_target_ids=sorted(self.liked),
            counts={
                target_id: TargetCounts(
                    like_count=self.counts.get(target_id, 0),
                    comment_count=self.comment_counts.get(target_id, 0),
                )
                for target_id in target_ids
            },
        )


@pytest.fixture
def make_api() -> Callable[..., FakeToggleAPI]:
    return FakeToggleAPI
