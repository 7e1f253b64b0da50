"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict


# Response Schemas
class ToggleResponse(BaseModel):
    """Authoritative state after a like toggle"""

    engaged: bool
    count: int = Field(..., ge=0)


class LikeStatusResponse(BaseModel):
    """Current like state of one post for the caller"""

    target_id: str
    engaged: bool
    count: int = Field(..., ge=0)


class LikedPostsResponse(BaseModel):
    """Paginated IDs of posts liked by the caller"""

    target_ids: List[str]
    total: int
    page: int
    page_size: int
    has_more: bool


class TargetCounts(BaseModel):
    """Engagement counters of one post"""

    like_count: int = Field(0, ge=0)
    comment_count: int = Field(0, ge=0)


class EngagementSnapshotResponse(BaseModel):
    """State used to seed a client view before any toggle"""

    actor_id: int
    engaged_target_ids: List[str]
    counts: Dict[str, TargetCounts]


# Internal Models
class User(BaseModel):
    """User model from Auth Service"""

    id: int
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    is_active: bool = True
