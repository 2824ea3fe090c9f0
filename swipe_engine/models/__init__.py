"""Data models and configuration."""

from .candidate import Candidate, RankedCandidate, RecommendationResult, ScoreBreakdown
from .cluster import ClusterInfo, ClusteringQuality, ClusteringResult, MatchResult
from .config import (
    DEFAULT_CONFIG,
    AffinityFactors,
    AlgorithmSettings,
    CandidateSelectorSettings,
    ClusteringSettings,
    CombinerWeights,
    DBSCANSettings,
    DiversityFactors,
    EmbeddingSettings,
    EngagementFactors,
    EngineConfig,
    ExecutionSettings,
    KMeansSettings,
    NoveltyFactors,
    QualityFactors,
    TemporalFactors,
    parse_cluster_settings,
    resolve_config,
)
from .content import ContentCounters, ContentMetadata, ContentQuery, ContentSignals, normalize_tag
from .embedding import (
    ContentEmbedding,
    EmbeddingMetadata,
    EmbeddingRecord,
    EmbeddingResult,
    EmbeddingVector,
    UserEmbedding,
)
from .interaction import InteractionType, UserInteraction, classify_view
from .profile import (
    Demographics,
    OnboardingData,
    RecommendationContext,
    UserProfile,
    UserSignals,
    ViewingPattern,
)
