"""Clustering passes and the current cluster snapshot."""

from typing import List, Optional

from fastapi import APIRouter

from swipe_engine.models.cluster import ClusterInfo

from ..models import ClusterSummary, RecomputeClustersRequest, RecomputeClustersResponse
from ..state import get_state

router = APIRouter()


def _summaries(clusters: List[ClusterInfo]) -> List[ClusterSummary]:
    return [
        ClusterSummary(
            id=c.id,
            size=c.size,
            topics=c.topics,
            density=c.density,
            cohesion=c.cohesion,
            stability=c.stability,
            is_noise=c.is_noise,
        )
        for c in clusters
    ]


@router.get("", response_model=List[ClusterSummary])
def list_clusters():
    """Current cluster snapshot."""
    return _summaries(get_state().engine.clusters)


@router.post("/recompute", response_model=RecomputeClustersResponse)
def recompute_clusters(request: Optional[RecomputeClustersRequest] = None):
    """
    Run a full clustering pass over the content embeddings.
    Invalid parameters are rejected with 400 before any work starts.
    """
    request = request or RecomputeClustersRequest()
    state = get_state()
    result = state.engine.recompute_clusters(config=request.config, query=request.query)
    return RecomputeClustersResponse(
        algorithm=result.algorithm,
        clusters=_summaries(result.clusters),
        excluded_ids=result.excluded_ids,
        silhouette_score=result.quality.silhouette_score,
        davies_bouldin_index=result.quality.davies_bouldin_index,
        noise_ratio=result.quality.noise_ratio,
        execution_time_ms=result.execution_time_ms,
    )
