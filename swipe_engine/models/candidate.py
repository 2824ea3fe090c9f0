"""
Candidate models. Built per request, never persisted.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .content import ContentCounters


class Candidate(BaseModel):
    id: str
    owner_id: str
    created_at: datetime
    statistics: ContentCounters = Field(default_factory=ContentCounters)
    cluster_score: float = 0.0
    cluster_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    format: Optional[str] = None


class ScoreBreakdown(BaseModel):
    """Per-scorer values; None for scorers not enabled in the combiner."""

    affinity: Optional[float] = None
    temporal: Optional[float] = None
    novelty: Optional[float] = None
    diversity: Optional[float] = None
    quality: Optional[float] = None
    engagement: Optional[float] = None
    extra: Dict[str, float] = Field(default_factory=dict)


class RankedCandidate(Candidate):
    final_score: float
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)


class RecommendationResult(BaseModel):
    user_id: str
    candidates: List[RankedCandidate] = Field(default_factory=list)
    # Scoring hit its timeout; only candidates scored in time are ranked.
    partial: bool = False
    # Selection produced nothing; a valid empty outcome, not an error.
    no_candidates: bool = False
    matched_clusters: int = 0
    embedding_source: Optional[str] = None
