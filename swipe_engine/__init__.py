"""
Swipe engine — embedding-based recommendation core for a swipe feed.

Users and content are embedded into one vector space, content is clustered,
users are matched to clusters, and candidates drawn from matched clusters
are scored and ranked.
"""

from .engine import RecommendationEngine
from .errors import (
    ArityMismatch,
    ClusterConfigInvalid,
    ConfigurationError,
    DimensionMismatch,
    EmbeddingUnavailable,
    OperationCancelled,
    SwipeEngineError,
)
from .models import (
    DEFAULT_CONFIG,
    Candidate,
    ClusterInfo,
    ClusteringResult,
    ContentCounters,
    ContentMetadata,
    ContentQuery,
    ContentSignals,
    DBSCANSettings,
    EngineConfig,
    KMeansSettings,
    MatchResult,
    OnboardingData,
    RankedCandidate,
    RecommendationContext,
    RecommendationResult,
    UserInteraction,
    UserProfile,
)
from .utils import CancellationToken

__version__ = "0.1.0"

__all__ = [
    "RecommendationEngine",
    "ArityMismatch",
    "ClusterConfigInvalid",
    "ConfigurationError",
    "DimensionMismatch",
    "EmbeddingUnavailable",
    "OperationCancelled",
    "SwipeEngineError",
    "DEFAULT_CONFIG",
    "Candidate",
    "ClusterInfo",
    "ClusteringResult",
    "ContentCounters",
    "ContentMetadata",
    "ContentQuery",
    "ContentSignals",
    "DBSCANSettings",
    "EngineConfig",
    "KMeansSettings",
    "MatchResult",
    "OnboardingData",
    "RankedCandidate",
    "RecommendationContext",
    "RecommendationResult",
    "UserInteraction",
    "UserProfile",
    "CancellationToken",
]
