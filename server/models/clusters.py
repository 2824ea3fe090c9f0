"""Request/response models for clustering passes."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from swipe_engine.models.content import ContentQuery


class RecomputeClustersRequest(BaseModel):
    """
    Algorithm parameters (e.g. {"algorithm": "kmeans", "k": 12}); omitted
    values fall back to the engine configuration. `query` restricts the corpus.
    """

    config: Optional[Dict[str, Any]] = None
    query: Optional[ContentQuery] = None


class ClusterSummary(BaseModel):
    id: str
    size: int
    topics: List[str]
    density: Optional[float] = None
    cohesion: Optional[float] = None
    stability: Optional[float] = None
    is_noise: bool = False


class RecomputeClustersResponse(BaseModel):
    algorithm: str
    clusters: List[ClusterSummary]
    excluded_ids: List[str]
    silhouette_score: Optional[float] = None
    davies_bouldin_index: Optional[float] = None
    noise_ratio: Optional[float] = None
    execution_time_ms: float
