"""
Repository interfaces - Define contracts for data access
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict
from .models import EngagementRecord, Target


class IEngagementRepository(ABC):
    """
    Engagement store interface

    Implementations must back `create_engagement` with a uniqueness
    constraint on (actor_id, target_id) and report a conflicting insert as
    False instead of raising.
    """

    @abstractmethod
    async def get_target(self, target_id: str) -> Optional[Target]:
        """Find post by ID"""
        pass

    @abstractmethod
    async def find_engagement(
        self, actor_id: int, target_id: str
    ) -> Optional[EngagementRecord]:
        """Find the like record for (actor, post)"""
        pass

    @abstractmethod
    async def create_engagement(self, actor_id: int, target_id: str) -> bool:
        """
        Insert the like record.

        Returns False when the record already exists. Raises
        TargetNotFoundError when the post no longer exists.
        """
        pass

    @abstractmethod
    async def delete_engagement(self, actor_id: int, target_id: str) -> bool:
        """Delete the like record. Returns False when nothing was deleted."""
        pass

    @abstractmethod
    async def increment_count(self, target_id: str) -> bool:
        """Increment the denormalized like counter. False if the post is gone."""
        pass

    @abstractmethod
    async def decrement_count(self, target_id: str) -> bool:
        """Decrement the like counter, never below zero. False if the post is gone."""
        pass

    @abstractmethod
    async def refresh_count(self, target_id: str) -> Optional[int]:
        """
        Re-derive the like counter from the like records, store it and
        return it. None if the post is gone.
        """
        pass

    @abstractmethod
    async def get_engaged_target_ids(
        self, actor_id: int, limit: Optional[int] = None, offset: int = 0
    ) -> List[str]:
        """Get IDs of posts liked by the actor, newest first"""
        pass

    @abstractmethod
    async def count_engaged_targets(self, actor_id: int) -> int:
        """Get number of posts liked by the actor"""
        pass

    @abstractmethod
    async def get_targets(self, target_ids: List[str]) -> Dict[str, Target]:
        """Get several posts keyed by ID; missing IDs are omitted"""
        pass
