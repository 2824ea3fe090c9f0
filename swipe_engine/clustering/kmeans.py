"""
Centroid-based clustering (k-means, Lloyd iterations).

Stops when no centroid moves farther than `threshold` (converged) or after
`max_iterations`, whichever comes first.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from ..models.config import KMeansSettings
from ..utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def _squared_distances(matrix: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    diff = matrix[:, None, :] - centroids[None, :, :]
    return np.einsum("nkd,nkd->nk", diff, diff)


def _init_centroids(matrix: np.ndarray, k: int, method: str, rng: np.random.Generator) -> np.ndarray:
    n = matrix.shape[0]
    if method == "random":
        return matrix[rng.choice(n, size=k, replace=False)].copy()

    # k-means++: each next seed drawn with probability proportional to D^2.
    chosen = [int(rng.integers(n))]
    closest = np.sum((matrix - matrix[chosen[0]]) ** 2, axis=1)
    for _ in range(1, k):
        total = closest.sum()
        if total <= 0:
            remaining = np.setdiff1d(np.arange(n), chosen)
            nxt = int(rng.choice(remaining))
        else:
            nxt = int(rng.choice(n, p=closest / total))
        chosen.append(nxt)
        closest = np.minimum(closest, np.sum((matrix - matrix[nxt]) ** 2, axis=1))
    return matrix[chosen].copy()


def kmeans(
    matrix: np.ndarray,
    settings: KMeansSettings,
    token: Optional[CancellationToken] = None,
) -> Tuple[np.ndarray, np.ndarray, int, bool]:
    """
    Cluster the rows of `matrix`.

    Returns (labels, centroids, iterations, converged). k is capped at the
    number of points.
    """
    token = token or CancellationToken.none()
    n = matrix.shape[0]
    if n == 0:
        return np.zeros(0, dtype=int), np.zeros((0, matrix.shape[1] if matrix.ndim == 2 else 0)), 0, True

    k = min(settings.k, n)
    if k < settings.k:
        logger.info("[kmeans] K_REDUCED requested=%s points=%s", settings.k, n)

    rng = np.random.default_rng(settings.random_seed)
    centroids = _init_centroids(matrix, k, settings.init_method, rng)
    labels = np.zeros(n, dtype=int)
    converged = False
    iterations = 0

    for iterations in range(1, settings.max_iterations + 1):
        token.raise_if_cancelled("kmeans")
        labels = np.argmin(_squared_distances(matrix, centroids), axis=1)
        updated = centroids.copy()
        for c in range(k):
            members = matrix[labels == c]
            # Empty clusters keep their previous centroid.
            if len(members):
                updated[c] = members.mean(axis=0)
        shift = float(np.max(np.linalg.norm(updated - centroids, axis=1)))
        centroids = updated
        if shift <= settings.threshold:
            converged = True
            break

    labels = np.argmin(_squared_distances(matrix, centroids), axis=1)
    return labels, centroids, iterations, converged
