"""Request/response models for user embeddings, interactions and recommendations."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .common import CandidateCard, EmbeddingResponse


class OnboardingRequest(BaseModel):
    """Onboarding answers for a brand-new user."""

    interests: List[str] = []
    languages: List[str] = []
    age_range: Optional[str] = None
    location: Optional[str] = None


class BuildEmbeddingRequest(BaseModel):
    """Rebuild from interaction history, or seed from onboarding data."""

    onboarding: Optional[OnboardingRequest] = None
    include_values: bool = False


class InteractionRequest(BaseModel):
    """
    One interaction. A bare "view" with duration_seconds is classified into
    short_view / long_view before it is recorded.
    """

    id: Optional[str] = None
    entity_id: str
    entity_type: str = "content"
    type: str
    timestamp: Optional[datetime] = None
    topics: List[str] = []
    duration_seconds: Optional[float] = Field(default=None, ge=0)
    watch_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    metadata: Dict[str, Any] = {}

    @model_validator(mode="after")
    def type_not_empty(self):
        if not self.type.strip():
            raise ValueError("type must not be empty")
        return self


class InteractionResponse(BaseModel):
    interaction_id: str
    type: str
    embedding: EmbeddingResponse


class RecommendationResponse(BaseModel):
    user_id: str
    candidates: List[CandidateCard]
    partial: bool
    no_candidates: bool
    matched_clusters: int
    embedding_source: Optional[str] = None
