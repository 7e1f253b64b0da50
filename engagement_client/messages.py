"""
Typed payloads carried by the broadcast bus
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class EngagementKind(str, Enum):
    """Kind of engagement a store and its bus pair track"""

    LIKE = "like"
    COMMENT = "comment"

    @property
    def tracks_membership(self) -> bool:
        """Whether the actor's own membership is part of the state"""
        return self == EngagementKind.LIKE


class EngagementChanged(BaseModel):
    """
    Confirmed engagement state of one post.

    Carries absolute values, never deltas, so a consumer can apply it
    unconditionally. `engaged` is None for kinds that only track a count.
    """

    kind: EngagementKind
    target_id: str = Field(..., min_length=1)
    actor_id: int
    engaged: Optional[bool] = None
    count: int = Field(..., ge=0)
    emitted_at: datetime = Field(default_factory=datetime.utcnow)
    source: Optional[str] = None

    model_config = {"extra": "forbid"}
