"""
Vector math: similarity, distance, normalization, resize and combine.

Pure functions over float sequences. Inputs may be lists, tuples or numpy
arrays; outputs are plain lists so they can be stored and serialized as-is.
"""

from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from sklearn.metrics import pairwise_distances as sk_pairwise_distances

from ..errors import ArityMismatch, DimensionMismatch

Vector = Sequence[float]

DISTANCE_METRICS = ("euclidean", "manhattan", "cosine")


def _as_array(v: Vector) -> np.ndarray:
    return np.asarray(v, dtype=float)


def _check_same_dimension(a: np.ndarray, b: np.ndarray) -> None:
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatch(a.shape[0], b.shape[0])


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector has zero magnitude."""
    va, vb = _as_array(a), _as_array(b)
    _check_same_dimension(va, vb)
    norm_product = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm_product == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm_product, -1.0, 1.0))


def cosine_distance(a: Vector, b: Vector) -> float:
    """1 - cosine similarity, in [0, 2]."""
    return 1.0 - cosine_similarity(a, b)


def euclidean_distance(a: Vector, b: Vector) -> float:
    va, vb = _as_array(a), _as_array(b)
    _check_same_dimension(va, vb)
    return float(np.linalg.norm(va - vb))


def manhattan_distance(a: Vector, b: Vector) -> float:
    va, vb = _as_array(a), _as_array(b)
    _check_same_dimension(va, vb)
    return float(np.abs(va - vb).sum())


DISTANCE_FUNCTIONS: Dict[str, Callable[[Vector, Vector], float]] = {
    "euclidean": euclidean_distance,
    "cosine": cosine_distance,
    "manhattan": manhattan_distance,
}


def pairwise_distances(matrix: np.ndarray, metric: str = "euclidean") -> np.ndarray:
    """
    Full n x n distance matrix for the rows of `matrix`.

    Zero rows sit at cosine distance 1 from every other row; the diagonal is
    always 0, so a point is its own neighbor.
    """
    if metric not in DISTANCE_METRICS:
        raise ValueError(f"Unknown distance function: {metric}")
    distances = sk_pairwise_distances(np.asarray(matrix, dtype=float), metric=metric)
    if metric == "cosine":
        distances = np.clip(distances, 0.0, 2.0)
    np.fill_diagonal(distances, 0.0)
    return distances


def normalize_l2(v: Vector) -> List[float]:
    """Scale to unit length. The zero vector is returned unchanged."""
    arr = _as_array(v)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.tolist()
    return (arr / norm).tolist()


def normalize_min_max(v: Vector) -> List[float]:
    """Map values onto [0, 1]. A constant vector maps to all 0.5."""
    arr = _as_array(v)
    if arr.size == 0:
        return []
    lo, hi = arr.min(), arr.max()
    if hi == lo:
        return [0.5] * arr.size
    return ((arr - lo) / (hi - lo)).tolist()


def normalize_z_score(v: Vector) -> List[float]:
    """Zero mean, unit variance. A constant vector maps to all zeros."""
    arr = _as_array(v)
    if arr.size == 0:
        return []
    std = arr.std()
    if std == 0:
        return [0.0] * arr.size
    return ((arr - arr.mean()) / std).tolist()


def normalize_sum_to_one(v: Vector) -> List[float]:
    """Scale so the values sum to 1. Uniform when they sum to 0."""
    arr = _as_array(v)
    if arr.size == 0:
        return []
    total = arr.sum()
    if total == 0:
        return [1.0 / arr.size] * arr.size
    return (arr / total).tolist()


def resize_vector(v: Vector, n: int) -> List[float]:
    """Truncate or zero-pad to length n."""
    if n < 0:
        raise ValueError(f"Target size must be non-negative, got {n}")
    values = [float(x) for x in v]
    if len(values) >= n:
        return values[:n]
    return values + [0.0] * (n - len(values))


def combine_vectors(
    vectors: Sequence[Vector],
    weights: Optional[Sequence[float]] = None,
) -> List[float]:
    """
    Weighted average of equally sized vectors.

    Weights are normalized to sum to 1; omitted or all-zero weights fall
    back to a uniform average.
    """
    if not vectors:
        return []
    matrix = [_as_array(v) for v in vectors]
    dim = matrix[0].shape[0]
    for arr in matrix[1:]:
        if arr.shape[0] != dim:
            raise DimensionMismatch(dim, arr.shape[0], "combine_vectors")
    if weights is None:
        w = np.full(len(matrix), 1.0 / len(matrix))
    else:
        if len(weights) != len(matrix):
            raise ArityMismatch(len(matrix), len(weights))
        w = np.asarray(normalize_sum_to_one(weights))
    return (np.stack(matrix).T @ w).tolist()


def mean_vector(vectors: Sequence[Vector]) -> List[float]:
    """Uniform mean; convenience wrapper used for centroids."""
    return combine_vectors(vectors)
