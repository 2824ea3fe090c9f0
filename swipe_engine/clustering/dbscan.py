"""
Density-based clustering (DBSCAN).

A point with at least `min_points` neighbors within `epsilon` (itself
included) is a core point. Clusters grow from core points through their
neighborhoods; non-core points reached during growth become border members,
everything else is noise.
"""

from collections import deque
from typing import Optional, Tuple

import numpy as np

from ..models.config import DBSCANSettings
from ..utils.cancellation import CancellationToken
from ..utils.vectors import pairwise_distances

UNDEFINED = -2
NOISE = -1

# Cancellation is checked every this many point visits.
CHECK_EVERY = 256


def dbscan(
    matrix: np.ndarray,
    settings: DBSCANSettings,
    token: Optional[CancellationToken] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Label the rows of `matrix`.

    Returns (labels, core_mask): labels are cluster indices 0..n-1 in
    discovery order, NOISE (-1) for noise.
    """
    token = token or CancellationToken.none()
    n = matrix.shape[0]
    if n == 0:
        return np.zeros(0, dtype=int), np.zeros(0, dtype=bool)

    distances = pairwise_distances(matrix, settings.distance_function)
    neighbors = [np.flatnonzero(distances[i] <= settings.epsilon) for i in range(n)]
    core = np.array([len(nb) >= settings.min_points for nb in neighbors], dtype=bool)

    labels = np.full(n, UNDEFINED, dtype=int)
    cluster = -1
    visits = 0

    for i in range(n):
        if labels[i] != UNDEFINED:
            continue
        if not core[i]:
            labels[i] = NOISE
            continue

        cluster += 1
        labels[i] = cluster
        seeds = deque(neighbors[i])
        while seeds:
            visits += 1
            if visits % CHECK_EVERY == 0:
                token.raise_if_cancelled("dbscan")
            j = seeds.popleft()
            if labels[j] == NOISE:
                # Border point: reachable but not core.
                labels[j] = cluster
                continue
            if labels[j] != UNDEFINED:
                continue
            labels[j] = cluster
            if core[j]:
                seeds.extend(neighbors[j])

    return labels, core
