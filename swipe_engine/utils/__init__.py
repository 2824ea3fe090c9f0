"""Shared numeric and time utilities."""

from .scores import (
    clamp,
    days_since,
    ensure_utc,
    half_life_decay,
    hours_since,
    sigmoid,
    utcnow,
)
from .vectors import (
    DISTANCE_FUNCTIONS,
    combine_vectors,
    cosine_distance,
    cosine_similarity,
    euclidean_distance,
    manhattan_distance,
    mean_vector,
    normalize_l2,
    normalize_min_max,
    normalize_sum_to_one,
    normalize_z_score,
    pairwise_distances,
    resize_vector,
)
from .cancellation import CancellationToken
