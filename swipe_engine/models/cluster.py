"""
Cluster snapshots, pass results and match results.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from ..utils.scores import utcnow


class ClusterInfo(BaseModel):
    """One cluster from one clustering pass. Replaced wholesale on recompute."""

    id: str
    centroid: List[float]
    size: int
    member_ids: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    # Normalized to [0, 1] by the producing algorithm.
    density: Optional[float] = None
    cohesion: Optional[float] = None
    radius: Optional[float] = None
    # Member overlap with the closest cluster of the previous pass.
    stability: Optional[float] = None
    is_noise: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def size_covers_members(self):
        if self.member_ids and self.size < len(self.member_ids):
            raise ValueError(
                f"Cluster {self.id} size {self.size} < {len(self.member_ids)} members"
            )
        return self


class ClusteringQuality(BaseModel):
    silhouette_score: Optional[float] = None
    davies_bouldin_index: Optional[float] = None
    noise_ratio: float = 0.0
    excluded_points: int = 0


class ClusteringResult(BaseModel):
    clusters: List[ClusterInfo] = Field(default_factory=list)
    # entity id -> index into `clusters`; -1 for dropped noise.
    assignments: Dict[str, int] = Field(default_factory=dict)
    quality: ClusteringQuality = Field(default_factory=ClusteringQuality)
    converged: bool = True
    iterations: int = 0
    algorithm: str = "dbscan"
    excluded_ids: List[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0

    def cluster_of(self, entity_id: str) -> Optional[ClusterInfo]:
        index = self.assignments.get(entity_id, -1)
        if index < 0:
            return None
        return self.clusters[index]


class MatchResult(BaseModel):
    """A user embedding matched against one cluster."""

    cluster_id: str
    # Raw cosine similarity in [-1, 1].
    similarity: float
    # Match score in [0, 1] after boosts; what the selector thresholds on.
    score: float
    cluster: ClusterInfo
