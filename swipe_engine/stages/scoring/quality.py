"""
Quality scorer. Structural quality of the cluster a candidate came from:
cohesion (0.4), size fit (0.2), density (0.2), stability across passes (0.2).
"""

from typing import Optional

from ...models.config import QualityFactors
from ...utils.scores import clamp, sigmoid
from .base import BaseScorer, ScoringTarget, weighted_mean


def size_score(size: int, factors: QualityFactors) -> float:
    if size < factors.min_optimal_size:
        return size / factors.min_optimal_size
    if size <= factors.max_optimal_size:
        return 1.0
    over = size / factors.max_optimal_size - 1.0
    return max(factors.min_size_score, 1.0 - factors.oversize_penalty * over)


def _optional(value: Optional[float]) -> Optional[float]:
    return clamp(value) if value is not None else None


class QualityScorer(BaseScorer):
    name = "quality"
    factors_type = QualityFactors

    def _score(self, subject, target: ScoringTarget, context, factors: QualityFactors) -> Optional[float]:
        cluster = target.cluster
        if cluster is None:
            return None
        raw = weighted_mean(
            [
                (_optional(cluster.cohesion), factors.cohesion_weight),
                (size_score(cluster.size, factors), factors.size_weight),
                (_optional(cluster.density), factors.density_weight),
                (_optional(cluster.stability), factors.stability_weight),
            ]
        )
        return sigmoid(raw, steepness=factors.sigmoid_steepness) if raw is not None else None
