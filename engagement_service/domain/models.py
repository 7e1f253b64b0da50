"""
Domain models - Core business entities
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from enum import Enum


class EngagementState(str, Enum):
    """Membership state of one actor on one target"""
    ENGAGED = "engaged"
    NOT_ENGAGED = "not_engaged"


@dataclass
class EngagementRecord:
    """One actor's like on one post"""
    actor_id: int
    target_id: str
    created_at: Optional[datetime] = None


@dataclass
class Target:
    """Post as seen by the engagement service"""
    id: str
    owner_id: int
    like_count: int = 0
    comment_count: int = 0

    def is_owner(self, user_id: int) -> bool:
        """Check if the given user_id owns this post"""
        return self.owner_id == user_id


@dataclass
class ToggleOutcome:
    """
    Result of one toggle call.

    `performed` is True only when this call created or deleted the record
    itself; a call that lost the race to a concurrent duplicate still reports
    the truthful state but leaves `performed` False.
    """
    target_id: str
    state: EngagementState
    count: int
    performed: bool

    @property
    def engaged(self) -> bool:
        return self.state == EngagementState.ENGAGED
