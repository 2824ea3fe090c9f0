"""Pydantic request/response models for the API."""

from .clusters import ClusterSummary, RecomputeClustersRequest, RecomputeClustersResponse
from .common import CandidateCard, EmbeddingResponse
from .content import ContentRequest, ContentResponse
from .users import (
    BuildEmbeddingRequest,
    InteractionRequest,
    InteractionResponse,
    OnboardingRequest,
    RecommendationResponse,
)

__all__ = [
    "ClusterSummary",
    "RecomputeClustersRequest",
    "RecomputeClustersResponse",
    "CandidateCard",
    "EmbeddingResponse",
    "ContentRequest",
    "ContentResponse",
    "BuildEmbeddingRequest",
    "InteractionRequest",
    "InteractionResponse",
    "OnboardingRequest",
    "RecommendationResponse",
]
