"""
Pydantic models for Engagement Service responses
"""
from pydantic import BaseModel, Field
from typing import List, Dict


class ToggleResult(BaseModel):
    """Authoritative state returned by a like toggle"""

    engaged: bool
    count: int = Field(..., ge=0)


class LikeStatus(BaseModel):
    """Like state of one post"""

    target_id: str
    engaged: bool
    count: int = Field(..., ge=0)


class LikedPostsPage(BaseModel):
    """One page of liked post IDs"""

    target_ids: List[str]
    total: int
    page: int
    page_size: int
    has_more: bool


class TargetCounts(BaseModel):
    """Counters of one post"""

    like_count: int = Field(0, ge=0)
    comment_count: int = Field(0, ge=0)


class EngagementSnapshot(BaseModel):
    """State used to seed a view"""

    actor_id: int
    engaged_target_ids: List[str]
    counts: Dict[str, TargetCounts]
