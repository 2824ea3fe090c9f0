"""
Cluster quality metrics: per-pass silhouette and Davies-Bouldin scores
(scikit-learn), per-cluster cohesion and radius.
"""

import logging
from typing import Optional, Tuple

import numpy as np
from sklearn.metrics import davies_bouldin_score, silhouette_score

logger = logging.getLogger(__name__)


def pass_quality(
    matrix: np.ndarray,
    labels: np.ndarray,
    metric: str = "euclidean",
    max_points: int = 5000,
    random_seed: Optional[int] = 42,
) -> Tuple[Optional[float], Optional[float]]:
    """
    (silhouette, davies_bouldin) over non-noise points, or None where the
    metric is undefined (fewer than 2 clusters, or every point its own cluster).
    """
    mask = labels >= 0
    points = matrix[mask]
    assigned = labels[mask]
    n_clusters = len(np.unique(assigned))
    if n_clusters < 2 or n_clusters >= len(points):
        return None, None

    sample_size = max_points if 0 < max_points < len(points) else None
    try:
        silhouette = float(
            silhouette_score(
                points,
                assigned,
                metric=metric,
                sample_size=sample_size,
                random_state=random_seed,
            )
        )
    except ValueError as e:
        logger.warning("[cluster_quality] SILHOUETTE_FAILED error=%s", e)
        silhouette = None
    try:
        davies_bouldin = float(davies_bouldin_score(points, assigned))
    except ValueError as e:
        logger.warning("[cluster_quality] DAVIES_BOULDIN_FAILED error=%s", e)
        davies_bouldin = None
    return silhouette, davies_bouldin


def cohesion_and_radius(members: np.ndarray, centroid: np.ndarray) -> Tuple[float, float]:
    """
    cohesion: mean cosine similarity of members to the centroid, mapped to [0, 1].
    radius: largest euclidean distance from the centroid.
    """
    if len(members) == 0:
        return 0.0, 0.0
    c_norm = np.linalg.norm(centroid)
    m_norms = np.linalg.norm(members, axis=1)
    denom = m_norms * c_norm
    sims = np.divide(members @ centroid, denom, out=np.zeros(len(members)), where=denom > 0)
    cohesion = float((np.clip(sims, -1.0, 1.0).mean() + 1.0) / 2.0)
    radius = float(np.max(np.linalg.norm(members - centroid, axis=1)))
    return cohesion, radius
