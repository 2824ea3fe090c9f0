"""Request/response models for content registration."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from swipe_engine.models.content import ContentCounters


class ContentRequest(BaseModel):
    """Register (or replace) one piece of content and embed it."""

    id: str
    owner_id: str
    text: str = ""
    tags: List[str] = []
    created_at: Optional[datetime] = None
    counters: ContentCounters = Field(default_factory=ContentCounters)
    format: Optional[str] = None
    status: str = "published"
    visibility: str = "public"


class ContentResponse(BaseModel):
    content_id: str
    source: str
    error: Optional[str] = None
