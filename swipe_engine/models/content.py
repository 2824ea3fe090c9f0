"""
Content-side inputs: hydrated metadata, embedding signals and the typed
query filter used to pick a corpus.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..utils.scores import ensure_utc, utcnow


class ContentCounters(BaseModel):
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
    avg_watch_time: float = 0.0


class ContentMetadata(BaseModel):
    """Minimal metadata the candidate selector hydrates per content id."""

    id: str
    owner_id: str
    created_at: datetime
    counters: ContentCounters = Field(default_factory=ContentCounters)
    tags: List[str] = Field(default_factory=list)
    format: Optional[str] = None
    status: str = "published"
    visibility: str = "public"

    @field_validator("created_at")
    @classmethod
    def created_at_is_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ContentSignals(BaseModel):
    """Structured signals a content embedding is generated from."""

    content_id: str
    text: str = ""
    tags: List[str] = Field(default_factory=list)
    counters: ContentCounters = Field(default_factory=ContentCounters)
    author_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


def normalize_tag(tag: str) -> str:
    return tag.strip().lstrip("#").lower()


class ContentQuery(BaseModel):
    """Typed filter for content lookups; every field is optional."""

    status: Optional[Literal["draft", "published", "archived", "removed"]] = None
    visibility: Optional[Literal["public", "followers", "private"]] = None
    owner_id: Optional[str] = None
    hashtag: Optional[str] = None
    created_after: Optional[datetime] = None

    @field_validator("hashtag")
    @classmethod
    def hashtag_normalized(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        tag = normalize_tag(v)
        if not tag:
            raise ValueError("hashtag must not be empty")
        return tag

    @field_validator("created_after")
    @classmethod
    def created_after_is_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    def matches(self, content: ContentMetadata) -> bool:
        if self.status is not None and content.status != self.status:
            return False
        if self.visibility is not None and content.visibility != self.visibility:
            return False
        if self.owner_id is not None and content.owner_id != self.owner_id:
            return False
        if self.hashtag is not None and self.hashtag not in {normalize_tag(t) for t in content.tags}:
            return False
        if self.created_after is not None and content.created_at < self.created_after:
            return False
        return True
