"""
Vector Math Tests

Similarity, distances, normalization, resize and combine over plain float
sequences.

Run:
----
    pytest tests/test_vectors.py -v
"""

import math

import numpy as np
import pytest

from swipe_engine.errors import ArityMismatch, DimensionMismatch
from swipe_engine.utils.vectors import (
    combine_vectors,
    cosine_distance,
    cosine_similarity,
    euclidean_distance,
    manhattan_distance,
    normalize_l2,
    normalize_min_max,
    normalize_sum_to_one,
    normalize_z_score,
    pairwise_distances,
    resize_vector,
)


class TestSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1, 1], [-1, -1]) == pytest.approx(-1.0)

    def test_zero_vector_similarity_is_zero(self):
        assert cosine_similarity([0, 0, 0], [1, 2, 3]) == 0.0

    def test_dimension_mismatch_raises(self):
        with pytest.raises(DimensionMismatch):
            cosine_similarity([1, 2], [1, 2, 3])

    def test_dimension_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            euclidean_distance([1], [1, 2])

    def test_distances(self):
        assert euclidean_distance([0, 0], [3, 4]) == pytest.approx(5.0)
        assert manhattan_distance([0, 0], [3, -4]) == pytest.approx(7.0)
        assert cosine_distance([1, 0], [0, 1]) == pytest.approx(1.0)


class TestPairwiseDistances:
    @pytest.mark.parametrize("metric", ["euclidean", "manhattan", "cosine"])
    def test_matches_pointwise(self, metric):
        matrix = np.array([[1.0, 0.0], [0.0, 2.0], [3.0, 4.0]])
        d = pairwise_distances(matrix, metric)
        pointwise = {
            "euclidean": euclidean_distance,
            "manhattan": manhattan_distance,
            "cosine": cosine_distance,
        }[metric]
        for i in range(3):
            for j in range(3):
                assert d[i, j] == pytest.approx(pointwise(matrix[i], matrix[j]), abs=1e-9)

    def test_zero_row_cosine(self):
        matrix = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 3.0]])
        d = pairwise_distances(matrix, "cosine")
        assert d[0, 1] == pytest.approx(1.0)
        assert d[2, 0] == pytest.approx(1.0)
        assert d[1, 2] == pytest.approx(1.0)
        assert list(np.diag(d)) == [0.0, 0.0, 0.0]

    def test_manhattan_on_many_wide_rows(self):
        rng = np.random.default_rng(3)
        matrix = rng.normal(size=(400, 128))
        d = pairwise_distances(matrix, "manhattan")
        assert d.shape == (400, 400)
        assert np.allclose(d, d.T)
        for i, j in [(0, 1), (17, 399), (250, 3)]:
            assert d[i, j] == pytest.approx(manhattan_distance(matrix[i], matrix[j]))

    def test_unknown_metric(self):
        with pytest.raises(ValueError):
            pairwise_distances(np.zeros((2, 2)), "chebyshev")


class TestNormalization:
    def test_l2_unit_length(self):
        out = normalize_l2([3, 4])
        assert out == pytest.approx([0.6, 0.8])
        assert math.sqrt(sum(x * x for x in out)) == pytest.approx(1.0)

    def test_l2_zero_vector_unchanged(self):
        assert normalize_l2([0.0, 0.0, 0.0]) == [0.0, 0.0, 0.0]

    def test_min_max(self):
        assert normalize_min_max([2, 4, 6]) == pytest.approx([0.0, 0.5, 1.0])

    def test_min_max_constant(self):
        assert normalize_min_max([7, 7, 7]) == [0.5, 0.5, 0.5]

    def test_z_score(self):
        out = normalize_z_score([1, 2, 3])
        assert sum(out) == pytest.approx(0.0)
        assert np.std(out) == pytest.approx(1.0)

    def test_z_score_constant(self):
        assert normalize_z_score([4, 4]) == [0.0, 0.0]

    def test_sum_to_one(self):
        assert normalize_sum_to_one([1, 3]) == pytest.approx([0.25, 0.75])

    def test_sum_to_one_all_zero_is_uniform(self):
        assert normalize_sum_to_one([0, 0, 0, 0]) == [0.25] * 4


class TestResize:
    def test_truncate(self):
        assert resize_vector([1, 2, 3], 2) == [1.0, 2.0]

    def test_pad(self):
        assert resize_vector([1], 3) == [1.0, 0.0, 0.0]

    def test_negative_size(self):
        with pytest.raises(ValueError):
            resize_vector([1], -1)


class TestCombine:
    def test_weighted_average(self):
        out = combine_vectors([[1, 0], [0, 1]], [3, 1])
        assert out == pytest.approx([0.75, 0.25])

    def test_uniform_without_weights(self):
        assert combine_vectors([[2, 0], [0, 2]]) == pytest.approx([1.0, 1.0])

    def test_arity_mismatch(self):
        with pytest.raises(ArityMismatch):
            combine_vectors([[1, 0], [0, 1]], [1.0])

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch):
            combine_vectors([[1, 0], [0, 1, 2]])

    def test_empty(self):
        assert combine_vectors([]) == []
