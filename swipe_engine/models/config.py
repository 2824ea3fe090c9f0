"""
Engine configuration: embedding, candidate selection, clustering, scorer
factors, combiner weights and execution limits.

EngineConfig defaults are defined here. The server may pass a dict (e.g. from
the JSON file named by ENGINE_CONFIG_PATH); from_dict() merges it with these
defaults. The weighting constants are starting points to be re-tuned per
deployment, not load-bearing values.
"""

from typing import Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..errors import ClusterConfigInvalid, ConfigurationError


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    err = errors[0]
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


# -----------------------------------------------------------------------------
# Embeddings
# -----------------------------------------------------------------------------


class EmbeddingSettings(BaseModel):
    # Fixed per deployment. Every stored vector and centroid has this length.
    dimension: int = Field(default=128, gt=0)

    # EMA blend weight per interaction type: new = current*(1-w) + interaction*w.
    # Negative types carry no positive signal and are clipped to 0 (no change).
    interaction_blend_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "view": 0.1,
            "short_view": 0.05,
            "long_view": 0.2,
            "click": 0.1,
            "like": 0.3,
            "like_comment": 0.4,
            "comment": 0.5,
            "share": 0.7,
            "save": 0.6,
            "follow": 0.4,
            "dislike": -0.3,
            "report": -1.0,
            "show_less_often": -0.6,
            "unfollow": -0.4,
        }
    )
    default_blend_weight: float = 0.2

    # Max interactions read from the log to (re)build a user embedding.
    history_limit: int = Field(default=100, gt=0)

    # Fallback feature vector: number of one-hot content preference slots.
    preference_slots: int = Field(default=10, ge=0)

    # Activeness factor: recency/frequency/diversity over a rolling window.
    activeness_window_days: float = Field(default=30.0, gt=0)
    activeness_recency_weight: float = Field(default=0.6, ge=0)
    activeness_frequency_weight: float = Field(default=0.3, ge=0)
    activeness_diversity_weight: float = Field(default=0.1, ge=0)

    # Content embedding = text*0.5 + tags*0.3 + engagement*0.2.
    content_text_weight: float = Field(default=0.5, ge=0)
    content_tags_weight: float = Field(default=0.3, ge=0)
    content_engagement_weight: float = Field(default=0.2, ge=0)
    # Engagement counters map to log10(1 + v) / engagement_log_scale.
    engagement_log_scale: float = Field(default=5.0, gt=0)
    # Content update keeps 70% of the current vector.
    content_update_current_weight: float = Field(default=0.7, ge=0, le=1)
    # Stored content embeddings older than this are regenerated.
    content_refresh_hours: float = Field(default=24.0, gt=0)
    batch_size: int = Field(default=100, gt=0)

    fallback_model_version: str = "numeric-fallback-v1"

    def blend_weight(self, interaction_type: str) -> float:
        """Blend weight for an interaction type, clipped to [0, 1]."""
        w = self.interaction_blend_weights.get(interaction_type, self.default_blend_weight)
        return max(0.0, min(1.0, w))


# -----------------------------------------------------------------------------
# Candidate selection and cluster matching
# -----------------------------------------------------------------------------


class CandidateSelectorSettings(BaseModel):
    # Clusters with match score <= this are skipped.
    minimum_cluster_score: float = 0.2
    # Content older than this many hours is dropped.
    time_window_hours: float = Field(default=168.0, gt=0)
    default_limit: int = Field(default=30, gt=0)
    # Extra ids pulled per cluster to absorb filtering losses.
    buffer_size: int = Field(default=5, ge=0)
    # Drop content the user already interacted with.
    exclude_seen: bool = True

    # Cluster matching: top max_clusters by score, raw cosine >= match_threshold.
    max_clusters: int = Field(default=3, gt=0)
    match_threshold: float = 0.2
    embedding_weight: float = Field(default=0.5, ge=0)
    interest_weight: float = Field(default=0.3, ge=0)
    context_weight: float = Field(default=0.2, ge=0)


# -----------------------------------------------------------------------------
# Clustering
# -----------------------------------------------------------------------------


class DBSCANSettings(BaseModel):
    algorithm: Literal["dbscan"] = "dbscan"
    # Neighborhood radius in the units of distance_function.
    epsilon: float = 0.3
    # Neighbors (the point itself included) needed for a core point.
    min_points: int = 5
    distance_function: Literal["euclidean", "cosine", "manhattan"] = "euclidean"
    noise_handling: Literal["separate-cluster", "ignore"] = "ignore"

    @model_validator(mode="after")
    def parameters_valid(self):
        self.check()
        return self

    def check(self) -> None:
        if not self.epsilon > 0:
            raise ClusterConfigInvalid(f"epsilon must be > 0, got {self.epsilon}")
        if self.min_points < 1:
            raise ClusterConfigInvalid(f"min_points must be >= 1, got {self.min_points}")


class KMeansSettings(BaseModel):
    algorithm: Literal["kmeans"] = "kmeans"
    k: int = 8
    max_iterations: int = 100
    init_method: Literal["k-means++", "random"] = "k-means++"
    random_seed: Optional[int] = 42
    # Converged once no centroid moves farther than this.
    threshold: float = 1e-3

    @model_validator(mode="after")
    def parameters_valid(self):
        self.check()
        return self

    def check(self) -> None:
        if self.k < 1:
            raise ClusterConfigInvalid(f"k must be >= 1, got {self.k}")
        if self.max_iterations < 1:
            raise ClusterConfigInvalid(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.threshold < 0:
            raise ClusterConfigInvalid(f"threshold must be >= 0, got {self.threshold}")


AlgorithmSettings = Union[DBSCANSettings, KMeansSettings]


class ClusteringSettings(BaseModel):
    algorithm: Literal["dbscan", "kmeans"] = "dbscan"
    dbscan: DBSCANSettings = Field(default_factory=DBSCANSettings)
    kmeans: KMeansSettings = Field(default_factory=KMeansSettings)
    # Most frequent member tags kept as cluster topics.
    topics_per_cluster: int = Field(default=5, ge=0)
    # Silhouette / Davies-Bouldin are O(n^2); skipped above this many points.
    quality_max_points: int = Field(default=5000, ge=0)

    @property
    def active(self) -> AlgorithmSettings:
        return self.dbscan if self.algorithm == "dbscan" else self.kmeans


def parse_cluster_settings(
    data: Union[None, AlgorithmSettings, Mapping],
    defaults: Optional[ClusteringSettings] = None,
) -> AlgorithmSettings:
    """
    Resolve the algorithm settings for one clustering pass.

    Accepts settings objects, a flat dict with an "algorithm" key, or None
    (use `defaults`). Invalid parameters raise ClusterConfigInvalid.
    """
    defaults = defaults or ClusteringSettings()
    if data is None:
        settings = defaults.active
    elif isinstance(data, (DBSCANSettings, KMeansSettings)):
        settings = data
    else:
        algorithm = data.get("algorithm", defaults.algorithm)
        base = defaults.dbscan if algorithm == "dbscan" else defaults.kmeans
        if algorithm not in ("dbscan", "kmeans"):
            raise ClusterConfigInvalid(f"Unknown clustering algorithm: {algorithm}")
        merged = {**base.model_dump(), **dict(data)}
        try:
            settings = type(base).model_validate(merged)
        except ValidationError as e:
            raise ClusterConfigInvalid(_first_error(e)) from e
    settings.check()
    return settings


# -----------------------------------------------------------------------------
# Scorer factors
# -----------------------------------------------------------------------------


class AffinityFactors(BaseModel):
    # Component weights. Components without input (no profile topics, no
    # interactions) drop out and the rest are renormalized.
    embedding_similarity_weight: float = Field(default=0.7, ge=0)
    shared_interests_weight: float = Field(default=0.2, ge=0)
    network_proximity_weight: float = Field(default=0.1, ge=0)
    cluster_centrality_weight: float = Field(default=0.05, ge=0)

    # Below this embedding similarity (on the [0, 1] scale) the raw score is
    # multiplied by 0.3 + 0.7 * sim / threshold.
    min_similarity_threshold: float = Field(default=0.3, ge=0, le=1)
    topic_decay_factor: float = Field(default=0.8, gt=0)
    topic_sigmoid_steepness: float = 3.0
    sigmoid_steepness: float = 5.0

    max_historical_interactions: int = Field(default=100, gt=0)
    network_half_life_hours: float = Field(default=168.0, gt=0)
    # Signed strength of each interaction type for network proximity.
    interaction_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "view": 0.2,
            "short_view": 0.1,
            "long_view": 0.3,
            "like": 0.5,
            "dislike": -0.3,
            "comment": 0.8,
            "like_comment": 0.9,
            "share": 1.0,
            "save": 0.7,
            "report": -1.0,
            "follow": 0.6,
            "unfollow": -0.4,
        }
    )
    default_interaction_weight: float = 0.3


class TemporalFactors(BaseModel):
    # Hour buckets (inclusive hours, first match wins), night otherwise.
    morning_hours: List[int] = Field(default_factory=lambda: [6, 11])
    midday_hours: List[int] = Field(default_factory=lambda: [12, 14])
    afternoon_hours: List[int] = Field(default_factory=lambda: [15, 18])
    evening_hours: List[int] = Field(default_factory=lambda: [19, 22])
    morning_weight: float = Field(default=0.8, ge=0, le=1)
    midday_weight: float = Field(default=0.6, ge=0, le=1)
    afternoon_weight: float = Field(default=0.7, ge=0, le=1)
    evening_weight: float = Field(default=0.9, ge=0, le=1)
    night_weight: float = Field(default=0.5, ge=0, le=1)

    # Day of week, Sunday = 0.
    weekday_weight: float = Field(default=0.7, ge=0, le=1)
    weekend_weight: float = Field(default=0.9, ge=0, le=1)
    day_adjustments: Dict[int, float] = Field(
        default_factory=lambda: {0: 0.1, 1: -0.1, 5: 0.2, 6: 0.1}
    )

    # freshness = 0.3 + 0.7 * 2^(-age / half_life)
    content_half_life_hours: float = Field(default=24.0, gt=0)

    # Event relevance: weekends count as holidays; peak hours get a bump.
    event_base: float = 0.5
    holiday_boost: float = 0.2
    peak_hour_boost: float = 0.1
    peak_hours: List[int] = Field(default_factory=lambda: [8, 12, 18, 20])
    weekend_peak_hours: List[int] = Field(default_factory=lambda: [10, 22])
    event_decay_factor: float = Field(default=0.8, gt=0)

    hour_weight: float = Field(default=0.4, ge=0)
    day_weight: float = Field(default=0.2, ge=0)
    freshness_weight: float = Field(default=0.3, ge=0)
    event_weight: float = Field(default=0.1, ge=0)
    sigmoid_steepness: float = 3.0


class NoveltyFactors(BaseModel):
    viewed_content_weight: float = Field(default=0.7, ge=0)
    topic_novelty_weight: float = Field(default=0.3, ge=0)
    # A seen item recovers novelty over this many days.
    novelty_decay_period_days: float = Field(default=30.0, gt=0)
    # Penalty for a cluster whose members the user has mostly seen.
    similar_content_discount: float = Field(default=0.5, ge=0, le=1)
    sigmoid_steepness: float = 4.0


class DiversityFactors(BaseModel):
    topic_weight: float = Field(default=0.5, ge=0)
    creator_weight: float = Field(default=0.3, ge=0)
    format_weight: float = Field(default=0.2, ge=0)
    # Topic diversity utility peaks at this share of new topics.
    target_topic_novelty: float = Field(default=0.7, gt=0, le=1)
    min_topic_diversity: float = Field(default=0.3, ge=0, le=1)
    recent_interactions: int = Field(default=50, gt=0)
    sigmoid_steepness: float = 4.0


class QualityFactors(BaseModel):
    cohesion_weight: float = Field(default=0.4, ge=0)
    size_weight: float = Field(default=0.2, ge=0)
    density_weight: float = Field(default=0.2, ge=0)
    stability_weight: float = Field(default=0.2, ge=0)
    min_optimal_size: int = Field(default=5, gt=0)
    max_optimal_size: int = Field(default=50, gt=0)
    # Oversized clusters lose this much per multiple of max_optimal_size.
    oversize_penalty: float = Field(default=0.5, ge=0)
    min_size_score: float = Field(default=0.3, ge=0, le=1)
    sigmoid_steepness: float = 4.0

    @model_validator(mode="after")
    def size_range_ordered(self):
        if self.min_optimal_size > self.max_optimal_size:
            raise ConfigurationError("min_optimal_size must be <= max_optimal_size")
        return self


class EngagementFactors(BaseModel):
    interaction_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "short_view": 0.5,
            "view": 1.0,
            "long_view": 1.0,
            "like": 2.0,
            "like_comment": 2.5,
            "comment": 3.0,
            "share": 4.0,
            "save": 3.5,
            "dislike": -0.5,
            "report": -1.0,
            "show_less_often": -0.6,
            "click": 0.3,
        }
    )
    default_weight: float = 0.3
    half_life_hours: Dict[str, float] = Field(
        default_factory=lambda: {
            "short_view": 24.0,
            "view": 48.0,
            "long_view": 48.0,
            "like": 168.0,
            "like_comment": 192.0,
            "comment": 336.0,
            "share": 336.0,
            "save": 720.0,
        }
    )
    default_half_life_hours: float = Field(default=48.0, gt=0)
    max_interactions_per_user: int = Field(default=100, gt=0)
    # user signal = 1 - exp(-total * normalization_factor)
    normalization_factor: float = Field(default=0.1, gt=0)
    # User signal when the user has history but none of it touches the cluster.
    no_relevant_score: float = Field(default=0.4, ge=0, le=1)
    user_signal_weight: float = Field(default=0.6, ge=0)
    popularity_weight: float = Field(default=0.4, ge=0)
    # popularity = min(1, log10(1 + weighted counters) / popularity_log_scale)
    popularity_log_scale: float = Field(default=4.0, gt=0)
    sigmoid_steepness: float = 4.0


# -----------------------------------------------------------------------------
# Combiner and execution
# -----------------------------------------------------------------------------


class CombinerWeights(BaseModel):
    """finalScore = sum(weight_i * score_i) over enabled scorers."""

    affinity: float = Field(default=0.3, ge=0)
    engagement: float = Field(default=0.25, ge=0)
    novelty: float = Field(default=0.2, ge=0)
    diversity: float = Field(default=0.1, ge=0)
    temporal: float = Field(default=0.05, ge=0)
    quality: float = Field(default=0.1, ge=0)
    # Weights for additional pluggable scorers, keyed by scorer name.
    extra: Dict[str, float] = Field(default_factory=dict)
    # Divide by the sum of enabled weights so final scores stay in [0, 1].
    normalize: bool = True
    # Tie-break when final scores are equal.
    tie_break: Literal["recency", "cluster_score", "id"] = "recency"

    @model_validator(mode="after")
    def weights_usable(self):
        weights = self.as_dict()
        if any(w < 0 for w in weights.values()):
            raise ConfigurationError("Combiner weights must be non-negative")
        if sum(weights.values()) <= 0:
            raise ConfigurationError("At least one combiner weight must be positive")
        return self

    def as_dict(self) -> Dict[str, float]:
        weights = {
            "affinity": self.affinity,
            "temporal": self.temporal,
            "novelty": self.novelty,
            "diversity": self.diversity,
            "quality": self.quality,
            "engagement": self.engagement,
        }
        weights.update(self.extra)
        return weights


class ExecutionSettings(BaseModel):
    # Scoring worker pool size; None = CPU count.
    max_workers: Optional[int] = Field(default=None, gt=0)
    # Per-request scoring budget; on expiry the partial ranking is returned.
    scoring_timeout_seconds: float = Field(default=2.0, gt=0)
    # Deadline for a clustering pass; None = no deadline.
    clustering_timeout_seconds: Optional[float] = Field(default=300.0, gt=0)


class EngineConfig(BaseModel):
    """Configuration for the whole engine."""

    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    selector: CandidateSelectorSettings = Field(default_factory=CandidateSelectorSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    affinity: AffinityFactors = Field(default_factory=AffinityFactors)
    temporal: TemporalFactors = Field(default_factory=TemporalFactors)
    novelty: NoveltyFactors = Field(default_factory=NoveltyFactors)
    diversity: DiversityFactors = Field(default_factory=DiversityFactors)
    quality: QualityFactors = Field(default_factory=QualityFactors)
    engagement: EngagementFactors = Field(default_factory=EngagementFactors)
    combiner: CombinerWeights = Field(default_factory=CombinerWeights)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)

    @classmethod
    def from_dict(cls, config_dict: Mapping) -> "EngineConfig":
        """Create config from a nested dict (e.g. loaded from JSON). Unknown keys are ignored."""
        allowed = set(cls.model_fields)
        filtered = {k: v for k, v in config_dict.items() if k in allowed}
        try:
            return cls.model_validate(filtered)
        except ValidationError as e:
            message = _first_error(e)
            if message.startswith("clustering"):
                raise ClusterConfigInvalid(message) from e
            raise ConfigurationError(message) from e


DEFAULT_CONFIG = EngineConfig()


def resolve_config(config: Union[None, "EngineConfig", Mapping]) -> "EngineConfig":
    """Return config, parse a dict, or DEFAULT_CONFIG when none is provided."""
    if config is None:
        return DEFAULT_CONFIG
    if isinstance(config, EngineConfig):
        return config
    return EngineConfig.from_dict(config)
