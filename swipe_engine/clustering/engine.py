"""
Cluster engine — one interface over DBSCAN and k-means.

A pass takes a snapshot of embeddings and produces a complete new
ClusteringResult. Points with the wrong dimension or non-finite values are
excluded and logged; invalid parameters raise ClusterConfigInvalid before
any work starts.
"""

import logging
import math
import time
from collections import Counter
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..models.cluster import ClusterInfo, ClusteringQuality, ClusteringResult
from ..models.config import (
    AlgorithmSettings,
    ClusteringSettings,
    DBSCANSettings,
    parse_cluster_settings,
)
from ..utils.cancellation import CancellationToken
from ..utils.scores import utcnow
from .dbscan import NOISE, dbscan
from .kmeans import kmeans
from .quality import cohesion_and_radius, pass_quality

NOISE_CLUSTER_ID = "dbscan-noise"


def _length(values) -> Optional[int]:
    try:
        return len(values)
    except TypeError:
        return None


class ClusterEngine:
    """
    Usage:
        engine = ClusterEngine(ClusteringSettings())
        result = engine.cluster({"post-1": [...], ...}, {"algorithm": "kmeans", "k": 4})
    """

    def __init__(
        self,
        settings: Optional[ClusteringSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or ClusteringSettings()
        self.logger = logger or logging.getLogger(__name__)

    def _valid_points(
        self,
        embeddings: Mapping[str, Sequence[float]],
        dimension: Optional[int],
    ):
        if dimension is None:
            lengths = Counter(n for n in (_length(v) for v in embeddings.values()) if n is not None)
            dimension = lengths.most_common(1)[0][0] if lengths else 0
        ids: List[str] = []
        rows: List[List[float]] = []
        excluded: List[str] = []
        for entity_id, values in embeddings.items():
            try:
                row = [float(x) for x in values]
                usable = len(row) == dimension and all(math.isfinite(x) for x in row)
            except (TypeError, ValueError):
                row, usable = None, False
            if not usable:
                excluded.append(entity_id)
                self.logger.warning(
                    "[cluster_engine] POINT_EXCLUDED id=%s dim=%s expected=%s",
                    entity_id,
                    _length(values),
                    dimension,
                )
                continue
            ids.append(entity_id)
            rows.append(row)
        matrix = np.asarray(rows, dtype=float).reshape(len(rows), dimension)
        return ids, matrix, excluded

    def cluster(
        self,
        embeddings: Mapping[str, Sequence[float]],
        config: Union[None, AlgorithmSettings, Mapping] = None,
        token: Optional[CancellationToken] = None,
        dimension: Optional[int] = None,
    ) -> ClusteringResult:
        settings = parse_cluster_settings(config, self.settings)
        token = token or CancellationToken.none()
        started = time.perf_counter()

        ids, matrix, excluded = self._valid_points(embeddings, dimension)
        if not ids:
            self.logger.info("[cluster_engine] EMPTY_PASS excluded=%s", len(excluded))
            return ClusteringResult(
                algorithm=settings.algorithm,
                excluded_ids=excluded,
                quality=ClusteringQuality(excluded_points=len(excluded)),
            )

        if isinstance(settings, DBSCANSettings):
            labels, core = dbscan(matrix, settings, token)
            centroids = None
            iterations, converged = 1, True
            metric = settings.distance_function
        else:
            labels, centroids, iterations, converged = kmeans(matrix, settings, token)
            core = None
            metric = "euclidean"

        clusters, assignments = self._build_clusters(ids, matrix, labels, core, centroids, settings)
        silhouette, davies_bouldin = pass_quality(
            matrix, labels, metric=metric, max_points=self.settings.quality_max_points
        )
        noise_count = int(np.sum(labels == NOISE))
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        self.logger.info(
            "[cluster_engine] PASS_DONE algorithm=%s points=%s clusters=%s noise=%s excluded=%s "
            "iterations=%s converged=%s ms=%.1f",
            settings.algorithm,
            len(ids),
            len(clusters),
            noise_count,
            len(excluded),
            iterations,
            converged,
            elapsed_ms,
        )
        return ClusteringResult(
            clusters=clusters,
            assignments=assignments,
            quality=ClusteringQuality(
                silhouette_score=silhouette,
                davies_bouldin_index=davies_bouldin,
                noise_ratio=noise_count / len(ids),
                excluded_points=len(excluded),
            ),
            converged=converged,
            iterations=iterations,
            algorithm=settings.algorithm,
            excluded_ids=excluded,
            execution_time_ms=elapsed_ms,
        )

    def _build_clusters(
        self,
        ids: List[str],
        matrix: np.ndarray,
        labels: np.ndarray,
        core: Optional[np.ndarray],
        centroids: Optional[np.ndarray],
        settings: AlgorithmSettings,
    ):
        now = utcnow()
        clusters: List[ClusterInfo] = []
        assignments: Dict[str, int] = {}
        prefix = settings.algorithm

        for label in sorted(int(x) for x in np.unique(labels) if x >= 0):
            mask = labels == label
            members = matrix[mask]
            if len(members) == 0:
                continue
            centroid = centroids[label] if centroids is not None else members.mean(axis=0)
            cohesion, radius = cohesion_and_radius(members, centroid)
            if core is not None:
                density = float(core[mask].mean())
            else:
                density = 1.0 / (1.0 + float(np.linalg.norm(members - centroid, axis=1).mean()))
            member_ids = [ids[i] for i in np.flatnonzero(mask)]
            index = len(clusters)
            clusters.append(
                ClusterInfo(
                    id=f"{prefix}-{label}",
                    centroid=centroid.tolist(),
                    size=len(member_ids),
                    member_ids=member_ids,
                    density=density,
                    cohesion=cohesion,
                    radius=radius,
                    created_at=now,
                    updated_at=now,
                )
            )
            for member_id in member_ids:
                assignments[member_id] = index

        noise_mask = labels == NOISE
        noise_ids = [ids[i] for i in np.flatnonzero(noise_mask)]
        if noise_ids:
            keep_noise = (
                isinstance(settings, DBSCANSettings)
                and settings.noise_handling == "separate-cluster"
            )
            if keep_noise:
                members = matrix[noise_mask]
                centroid = members.mean(axis=0)
                cohesion, radius = cohesion_and_radius(members, centroid)
                index = len(clusters)
                clusters.append(
                    ClusterInfo(
                        id=NOISE_CLUSTER_ID,
                        centroid=centroid.tolist(),
                        size=len(noise_ids),
                        member_ids=noise_ids,
                        density=0.0,
                        cohesion=cohesion,
                        radius=radius,
                        is_noise=True,
                        created_at=now,
                        updated_at=now,
                    )
                )
                for member_id in noise_ids:
                    assignments[member_id] = index
            else:
                for member_id in noise_ids:
                    assignments[member_id] = -1
        return clusters, assignments
