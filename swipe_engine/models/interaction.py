"""
Interaction events, the append-only source of truth every embedding and
engagement signal is derived from.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.scores import utcnow


class InteractionType(str, Enum):
    VIEW = "view"
    SHORT_VIEW = "short_view"
    LONG_VIEW = "long_view"
    LIKE = "like"
    LIKE_COMMENT = "like_comment"
    COMMENT = "comment"
    SHARE = "share"
    SAVE = "save"
    CLICK = "click"
    DISLIKE = "dislike"
    REPORT = "report"
    SHOW_LESS_OFTEN = "show_less_often"
    FOLLOW = "follow"
    UNFOLLOW = "unfollow"


# A view counts as "long" past either threshold.
LONG_VIEW_MIN_SECONDS = 30.0
LONG_VIEW_MIN_PERCENTAGE = 80.0


def classify_view(duration_seconds: float, watch_percentage: float = 0.0) -> InteractionType:
    """Split a raw view into short_view / long_view."""
    if duration_seconds >= LONG_VIEW_MIN_SECONDS or watch_percentage >= LONG_VIEW_MIN_PERCENTAGE:
        return InteractionType.LONG_VIEW
    return InteractionType.SHORT_VIEW


class UserInteraction(BaseModel):
    """
    One user action on one entity.

    `type` is a plain string so new interaction kinds flow through without a
    schema change; known kinds are listed in InteractionType.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    entity_id: str
    entity_type: str = "content"
    type: str
    timestamp: datetime = Field(default_factory=utcnow)
    # Topics/hashtags of the entity at interaction time.
    topics: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def type_as_plain_string(cls, v):
        if isinstance(v, Enum):
            return v.value
        return str(v).lower()

    @property
    def owner_id(self) -> Optional[str]:
        return self.metadata.get("owner_id")

    @property
    def content_format(self) -> Optional[str]:
        return self.metadata.get("format")
