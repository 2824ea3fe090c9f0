"""
Clustering Tests

DBSCAN and k-means behind the ClusterEngine, quality metrics, noise
handling, topic labeling, stability and cluster matching.

Run:
----
    pytest tests/test_clustering.py -v
"""

import numpy as np
import pytest

from swipe_engine.clustering import (
    NOISE,
    NOISE_CLUSTER_ID,
    ClusterEngine,
    ClusterMatcher,
    assign_stability,
    dbscan,
    kmeans,
    label_cluster_topics,
)
from swipe_engine.errors import ClusterConfigInvalid, OperationCancelled
from swipe_engine.models import (
    CandidateSelectorSettings,
    ClusterInfo,
    DBSCANSettings,
    KMeansSettings,
    RecommendationContext,
    UserProfile,
)
from swipe_engine.stores import InMemoryContentRepository
from swipe_engine.utils.cancellation import CancellationToken

from .conftest import FlakyContentRepository, make_content

CENTERS = [(0.0, 0.0), (10.0, 0.0), (0.0, 10.0)]
OUTLIERS = {"outlier-a": [50.0, 50.0], "outlier-b": [-50.0, 50.0]}


def blobs(per_blob: int = 20, sigma: float = 0.3, seed: int = 7):
    rng = np.random.default_rng(seed)
    points = {}
    for b, (cx, cy) in enumerate(CENTERS):
        for i in range(per_blob):
            points[f"blob{b}-{i}"] = [cx + rng.normal(0, sigma), cy + rng.normal(0, sigma)]
    return points


def _blob_of(entity_id: str) -> str:
    return entity_id.split("-")[0]


class TestDBSCAN:
    def test_labels_blobs_and_noise(self):
        points = {**blobs(), **OUTLIERS}
        matrix = np.array(list(points.values()))
        labels, core = dbscan(matrix, DBSCANSettings(epsilon=1.5, min_points=4))
        ids = list(points)
        assert len(set(labels[labels >= 0])) == 3
        assert labels[ids.index("outlier-a")] == NOISE
        assert labels[ids.index("outlier-b")] == NOISE
        assert not core[ids.index("outlier-a")]

    def test_min_points_counts_the_point_itself(self):
        matrix = np.array([[0.0, 0.0], [0.1, 0.0]])
        labels, _ = dbscan(matrix, DBSCANSettings(epsilon=0.5, min_points=2))
        assert list(labels) == [0, 0]

    def test_border_point_joins_cluster(self):
        # Three tight points are core; the fourth reaches only one of them.
        matrix = np.array([[0.0, 0.0], [0.2, 0.0], [0.4, 0.0], [1.3, 0.0]])
        labels, core = dbscan(matrix, DBSCANSettings(epsilon=1.0, min_points=3))
        assert list(core) == [True, True, True, False]
        assert list(labels) == [0, 0, 0, 0]

    def test_cancelled_token(self):
        matrix = np.zeros((600, 2))
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            dbscan(matrix, DBSCANSettings(epsilon=1.0, min_points=2), token)


class TestKMeans:
    def test_recovers_blobs(self):
        points = blobs()
        matrix = np.array(list(points.values()))
        labels, centroids, iterations, converged = kmeans(matrix, KMeansSettings(k=3))
        assert converged
        assert 1 <= iterations <= 100
        ids = list(points)
        for blob in ("blob0", "blob1", "blob2"):
            assigned = {labels[i] for i, entity_id in enumerate(ids) if _blob_of(entity_id) == blob}
            assert len(assigned) == 1
        assert len(set(labels)) == 3

    def test_same_seed_same_result(self):
        matrix = np.array(list(blobs().values()))
        a = kmeans(matrix, KMeansSettings(k=3, init_method="random", random_seed=1))
        b = kmeans(matrix, KMeansSettings(k=3, init_method="random", random_seed=1))
        assert np.array_equal(a[0], b[0])
        assert np.allclose(a[1], b[1])

    def test_k_capped_at_point_count(self):
        matrix = np.array([[0.0, 0.0], [5.0, 5.0]])
        labels, centroids, _, _ = kmeans(matrix, KMeansSettings(k=8))
        assert centroids.shape == (2, 2)
        assert sorted(labels) == [0, 1]

    def test_not_converged_within_one_iteration(self):
        matrix = np.array(list(blobs().values()))
        _, _, iterations, converged = kmeans(
            matrix, KMeansSettings(k=3, max_iterations=1, threshold=0.0, init_method="random")
        )
        assert iterations == 1
        assert not converged


class TestClusterEngine:
    def test_dbscan_pass(self):
        engine = ClusterEngine()
        result = engine.cluster(
            {**blobs(), **OUTLIERS}, {"algorithm": "dbscan", "epsilon": 1.5, "min_points": 4}
        )
        assert result.algorithm == "dbscan"
        assert len(result.clusters) == 3
        assert all(c.id.startswith("dbscan-") for c in result.clusters)
        assert result.assignments["outlier-a"] == -1
        assert result.cluster_of("outlier-a") is None
        assert result.quality.noise_ratio == pytest.approx(2 / 62)
        assert result.quality.silhouette_score > 0.8
        assert result.quality.davies_bouldin_index is not None
        for cluster in result.clusters:
            assert cluster.size == len(cluster.member_ids) == 20
            assert len({_blob_of(m) for m in cluster.member_ids}) == 1
            assert 0.0 <= cluster.density <= 1.0
            assert 0.0 <= cluster.cohesion <= 1.0

    def test_three_blobs_in_eight_dimensions(self):
        rng = np.random.default_rng(11)
        points = {}
        for b in range(3):
            center = np.zeros(8)
            center[b] = 10.0
            for i in range(30):
                points[f"blob{b}-{i}"] = (center + rng.normal(0, 0.3, 8)).tolist()

        result = ClusterEngine().cluster(points, {"algorithm": "dbscan", "epsilon": 2.0, "min_points": 3}, dimension=8)

        assert len(result.clusters) == 3
        assert result.converged
        assert all(result.assignments[p] >= 0 for p in points)
        for cluster in result.clusters:
            assert len({_blob_of(m) for m in cluster.member_ids}) == 1
            assert cluster.size == 30

    def test_noise_as_separate_cluster(self):
        result = ClusterEngine().cluster(
            {**blobs(), **OUTLIERS},
            DBSCANSettings(epsilon=1.5, min_points=4, noise_handling="separate-cluster"),
        )
        noise = [c for c in result.clusters if c.is_noise]
        assert len(noise) == 1
        assert noise[0].id == NOISE_CLUSTER_ID
        assert set(noise[0].member_ids) == set(OUTLIERS)
        assert result.cluster_of("outlier-b").is_noise

    def test_kmeans_pass(self):
        result = ClusterEngine().cluster(blobs(), {"algorithm": "kmeans", "k": 3})
        assert result.algorithm == "kmeans"
        assert [c.id for c in result.clusters] == ["kmeans-0", "kmeans-1", "kmeans-2"]
        assert result.converged
        assert sum(c.size for c in result.clusters) == 60

    def test_every_point_in_at_most_one_cluster(self):
        result = ClusterEngine().cluster(blobs(), {"algorithm": "kmeans", "k": 4})
        members = [m for c in result.clusters for m in c.member_ids]
        assert len(members) == len(set(members)) == 60

    def test_bad_points_excluded(self):
        points = blobs()
        points["short"] = [1.0]
        points["nan"] = [float("nan"), 0.0]
        points["none"] = None
        points["none-entry"] = [None, 0.0]
        points["text"] = ["a", 0.0]
        result = ClusterEngine().cluster(points, {"algorithm": "kmeans", "k": 3}, dimension=2)
        assert set(result.excluded_ids) == {"short", "nan", "none", "none-entry", "text"}
        assert result.quality.excluded_points == 5
        assert "short" not in result.assignments
        assert sum(c.size for c in result.clusters) == 60

    def test_malformed_points_excluded_without_dimension(self):
        points = blobs()
        points["none"] = None
        points["none-entry"] = [None, 0.0]
        result = ClusterEngine().cluster(points, {"algorithm": "dbscan", "epsilon": 1.5, "min_points": 4})
        assert set(result.excluded_ids) == {"none", "none-entry"}
        assert len(result.clusters) == 3

    def test_invalid_config_fails_before_work(self):
        with pytest.raises(ClusterConfigInvalid):
            ClusterEngine().cluster(blobs(), {"algorithm": "dbscan", "epsilon": 0})

    def test_empty_input(self):
        result = ClusterEngine().cluster({})
        assert result.clusters == []
        assert result.assignments == {}

    def test_single_cluster_has_no_silhouette(self):
        result = ClusterEngine().cluster(
            {f"p{i}": [float(i) * 0.01, 0.0] for i in range(10)},
            {"algorithm": "dbscan", "epsilon": 1.0, "min_points": 2},
        )
        assert len(result.clusters) == 1
        assert result.quality.silhouette_score is None


class TestTopicsAndStability:
    def _clusters(self):
        return [
            ClusterInfo(id="c0", centroid=[0.0], size=3, member_ids=["a", "b", "c"]),
            ClusterInfo(id="c1", centroid=[1.0], size=2, member_ids=["d", "missing"]),
        ]

    def test_label_topics_by_frequency(self):
        repo = InMemoryContentRepository(
            [
                make_content("a", ["#Tech", "ai"]),
                make_content("b", ["tech", "phones"]),
                make_content("c", ["tech", "ai"]),
                make_content("d", ["sports"]),
            ]
        )
        labeled = label_cluster_topics(self._clusters(), repo, top_n=2)
        assert labeled[0].topics == ["tech", "ai"]
        assert labeled[1].topics == ["sports"]

    def test_failed_lookup_skips_member(self):
        repo = FlakyContentRepository(
            [
                make_content("a", ["tech"]),
                make_content("b", ["phones"]),
                make_content("c", ["tech"]),
                make_content("d", ["sports"]),
            ],
            broken={"b", "d"},
        )
        labeled = label_cluster_topics(self._clusters(), repo, top_n=2)
        assert labeled[0].topics == ["tech"]
        assert labeled[1].topics == []

    def test_stability_against_previous_pass(self):
        previous = [ClusterInfo(id="old", centroid=[0.0], size=4, member_ids=["a", "b", "c", "x"])]
        current = assign_stability(self._clusters(), previous)
        assert current[0].stability == pytest.approx(3 / 4)
        assert current[1].stability == 0.0

    def test_no_previous_pass(self):
        assert assign_stability(self._clusters(), None)[0].stability is None


class TestClusterMatcher:
    def _clusters(self):
        return [
            ClusterInfo(id="east", centroid=[1.0, 0.0], size=5, topics=["tech"]),
            ClusterInfo(id="north", centroid=[0.0, 1.0], size=5, topics=["sports"]),
            ClusterInfo(id="west", centroid=[-1.0, 0.0], size=5, topics=["cooking"]),
        ]

    def test_ranks_by_similarity_and_drops_below_threshold(self):
        matcher = ClusterMatcher(CandidateSelectorSettings(match_threshold=0.2))
        matches = matcher.match([0.9, 0.3], self._clusters())
        assert [m.cluster_id for m in matches] == ["east", "north"]
        assert matches[0].similarity > matches[1].similarity
        assert all(0.0 <= m.score <= 1.0 for m in matches)

    def test_max_clusters(self):
        matcher = ClusterMatcher(CandidateSelectorSettings(match_threshold=-1.0))
        assert len(matcher.match([1.0, 1.0], self._clusters(), max_clusters=1)) == 1

    def test_interest_boost(self):
        matcher = ClusterMatcher(CandidateSelectorSettings(match_threshold=-1.0))
        profile = UserProfile(user_id="u1", interests=["sports"])
        matches = matcher.match([0.7071, 0.7071], self._clusters()[:2], profile)
        assert matches[0].cluster_id == "north"

    def test_session_topics_boost(self):
        matcher = ClusterMatcher(CandidateSelectorSettings(match_threshold=-1.0))
        context = RecommendationContext(session_topics=["tech"])
        matches = matcher.match([0.7071, 0.7071], self._clusters()[:2], context=context)
        assert matches[0].cluster_id == "east"

    def test_profile_only_without_embedding(self):
        matcher = ClusterMatcher()
        profile = UserProfile(user_id="u1", interests=["cooking"])
        matches = matcher.match(None, self._clusters(), profile)
        assert len(matches) == 3
        assert matches[0].cluster_id == "west"
        assert matches[-1].score == pytest.approx(0.5 * 0.5 / 0.8)

    def test_noise_cluster_never_matched(self):
        noise = ClusterInfo(id=NOISE_CLUSTER_ID, centroid=[1.0, 0.0], size=2, is_noise=True)
        matches = ClusterMatcher().match([1.0, 0.0], [noise])
        assert matches == []

    def test_dimension_mismatch_skips_cluster(self):
        odd = ClusterInfo(id="odd", centroid=[1.0, 0.0, 0.0], size=1)
        matches = ClusterMatcher().match([1.0, 0.0], [odd] + self._clusters())
        assert "odd" not in [m.cluster_id for m in matches]
