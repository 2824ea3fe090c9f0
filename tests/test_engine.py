"""
Recommendation Engine Tests

End-to-end behavior of the facade: lazy user embeddings, EMA updates under
concurrency, clustering passes and the full select-and-score pipeline.

Run:
----
    pytest tests/test_engine.py -v
"""

import threading

import pytest

from swipe_engine import ClusterConfigInvalid, RecommendationEngine
from swipe_engine.errors import OperationCancelled
from swipe_engine.models import ContentQuery, ContentSignals, OnboardingData, RecommendationContext
from swipe_engine.utils.cancellation import CancellationToken

from .conftest import (
    NOW,
    FailingEmbedder,
    FakeTextEmbedder,
    FlakyContentRepository,
    make_content,
    make_interaction,
)

TECH_TEXT = "#tech gadgets software"
SPORTS_TEXT = "#sports football match"
TWO_TOPIC_CLUSTERING = {"algorithm": "dbscan", "distance_function": "cosine", "epsilon": 0.3, "min_points": 3}


def _engine(repository, interaction_log, embedder=None, config=None):
    return RecommendationEngine(
        embedder if embedder is not None else FakeTextEmbedder(),
        repository,
        interaction_log,
        config=config,
    )


def _publish(engine, repository, content_id, text, tag):
    repository.add(make_content(content_id, [tag]))
    return engine.embed_content(
        ContentSignals(content_id=content_id, text=text, tags=[tag], counters=repository.find(content_id).counters)
    )


class TestUserEmbeddings:
    def test_lazy_build(self, repository, interaction_log, fake_embedder):
        interaction_log.append(make_interaction(1, "u1", "tech-1"))
        engine = _engine(repository, interaction_log, fake_embedder)

        first = engine.get_user_embedding("u1")
        calls = fake_embedder.calls
        second = engine.get_user_embedding("u1")

        assert first.metadata.source == "model"
        assert first.metadata.model_version == "fake-hash-embedder"
        assert first.metadata.interaction_count == 1
        assert fake_embedder.calls == calls
        assert second.vector.values == first.vector.values

    def test_user_without_history_gets_error_embedding(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        embedding = engine.build_user_embedding("ghost")
        assert embedding.metadata.source == "error"
        assert embedding.vector.is_zero

    def test_initialize_from_onboarding(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        embedding = engine.initialize_user_embedding("u1", OnboardingData(interests=["tech", "music"]))
        assert embedding.metadata.source == "initial"
        assert not embedding.vector.is_zero
        assert engine.user_store.get("u1") is not None

    def test_stale_vector_kept_on_error(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        seeded = engine.initialize_user_embedding("u1", OnboardingData(interests=["tech"]))
        engine.user_embeddings.embedder = FailingEmbedder()

        rebuilt = engine.build_user_embedding("u1")

        assert rebuilt.vector.values == seeded.vector.values
        assert engine.user_store.get_record("u1").metadata.source == "initial"

    def test_update_rejects_other_users_interaction(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        with pytest.raises(ValueError):
            engine.update_user_embedding("u1", make_interaction(1, "u2", "tech-1"))

    def test_record_interaction(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)

        first = engine.record_interaction(make_interaction(1, "u1", "tech-1"))
        second = engine.record_interaction(make_interaction(2, "u1", "tech-2", kind="share"))

        # The first interaction is folded in by the initial build.
        assert first.metadata.source == "model"
        assert second.metadata.source == "update"
        assert second.metadata.last_interaction_id == "u1-i2"
        assert second.metadata.last_interaction_type == "share"
        assert len(interaction_log.recent("u1", 10)) == 2

    def test_negative_interaction_leaves_vector(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        before = engine.record_interaction(make_interaction(1, "u1", "tech-1"))
        after = engine.record_interaction(make_interaction(2, "u1", "tech-2", kind="dislike"))
        assert after.vector.values == before.vector.values

    def test_concurrent_updates_are_all_recorded(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        engine.record_interaction(make_interaction(0, "u1", "tech-0"))
        errors = []

        def worker(offset):
            try:
                for n in range(5):
                    index = 1 + offset * 5 + n
                    engine.record_interaction(make_interaction(index, "u1", f"tech-{index}"))
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(interaction_log.recent("u1", 100)) == 41
        record = engine.user_store.get_record("u1")
        assert record.metadata.source == "update"
        assert sum(v * v for v in record.vector.values) == pytest.approx(1.0)

    def test_activeness(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        assert engine.activeness("u1") == 0.0
        interaction_log.append(make_interaction(1, "u1", "tech-1"))
        assert 0.0 < engine.activeness("u1", RecommendationContext.at(NOW)) <= 1.0


class TestRefreshUserEmbeddings:
    def test_summary_counts_every_user(self, repository, interaction_log):
        engine = _engine(repository, interaction_log, config={"embedding": {"batch_size": 2}})
        interaction_log.append(make_interaction(1, "u1", "tech-1"))
        interaction_log.append(make_interaction(1, "u2", "sports-1", topics=("sports",)))

        summary = engine.refresh_user_embeddings(["u1", "u2", "ghost"])

        assert summary == {"requested": 3, "refreshed": 3, "failed": 0}
        assert engine.user_store.get_record("u1").metadata.source == "model"
        assert engine.user_store.get_record("ghost").metadata.source == "error"

    def test_cancelled_before_first_batch(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        interaction_log.append(make_interaction(1, "u1", "tech-1"))
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelled):
            engine.refresh_user_embeddings(["u1"], token)
        assert engine.user_store.get_record("u1") is None

    def test_failing_user_does_not_stop_the_rest(self, repository, interaction_log, monkeypatch):
        engine = _engine(repository, interaction_log, config={"embedding": {"batch_size": 1}})
        for user_id in ("u1", "bad", "u2"):
            interaction_log.append(make_interaction(1, user_id, "tech-1"))
        load_profile = engine.load_profile

        def flaky_load_profile(user_id):
            if user_id == "bad":
                raise ConnectionError("interaction log unavailable")
            return load_profile(user_id)

        monkeypatch.setattr(engine, "load_profile", flaky_load_profile)

        summary = engine.refresh_user_embeddings(["u1", "bad", "u2"])

        assert summary == {"requested": 3, "refreshed": 2, "failed": 1}
        assert engine.user_store.get_record("bad") is None
        assert engine.user_store.get_record("u2") is not None


class TestContentEmbeddings:
    def test_embed_content_stores_vector(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        embedding = _publish(engine, repository, "tech-1", TECH_TEXT, "tech")
        assert embedding.metadata.source == "model"
        assert engine.content_store.get("tech-1").values == embedding.vector.values

    def test_refresh_skips_fresh_records(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        items = [ContentSignals(content_id=f"c{i}", text=TECH_TEXT, tags=["tech"]) for i in range(3)]

        assert engine.refresh_content_embeddings(items) == {
            "requested": 3, "refreshed": 3, "skipped": 0, "failed": 0,
        }
        assert engine.refresh_content_embeddings(items)["skipped"] == 3
        assert engine.refresh_content_embeddings(items, force=True)["refreshed"] == 3

    def test_refresh_regenerates_fallback_records(self, repository, interaction_log):
        engine = _engine(repository, interaction_log, FailingEmbedder())
        items = [ContentSignals(content_id="c1", text=TECH_TEXT, tags=["tech"])]
        engine.refresh_content_embeddings(items)
        assert engine.content_store.get_record("c1").metadata.source == "fallback"

        engine.content_embeddings.embedder = FakeTextEmbedder()
        summary = engine.refresh_content_embeddings(items)
        assert summary["refreshed"] == 1
        assert engine.content_store.get_record("c1").metadata.source == "model"


class TestRecomputeClusters:
    def test_invalid_config_fails_fast(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        with pytest.raises(ClusterConfigInvalid):
            engine.recompute_clusters({"algorithm": "dbscan", "epsilon": 0})
        with pytest.raises(ClusterConfigInvalid):
            engine.recompute_clusters({"algorithm": "kmeans", "k": 0})
        assert engine.clusters == []

    def test_two_topics_two_clusters(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        for i in range(10):
            _publish(engine, repository, f"tech-{i}", TECH_TEXT, "tech")
            _publish(engine, repository, f"sports-{i}", SPORTS_TEXT, "sports")

        result = engine.recompute_clusters(TWO_TOPIC_CLUSTERING)

        real = [c for c in result.clusters if not c.is_noise]
        assert sorted(c.topics[0] for c in real) == ["sports", "tech"]
        assert all(c.size == 10 for c in real)
        assert engine.clusters == result.clusters

    def test_query_restricts_corpus(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        for i in range(10):
            _publish(engine, repository, f"tech-{i}", TECH_TEXT, "tech")
            _publish(engine, repository, f"sports-{i}", SPORTS_TEXT, "sports")

        result = engine.recompute_clusters(TWO_TOPIC_CLUSTERING, query=ContentQuery(hashtag="sports"))

        members = {m for c in result.clusters for m in c.member_ids}
        assert members == {f"sports-{i}" for i in range(10)}

    def test_failed_metadata_lookup_drops_record(self, interaction_log):
        repository = FlakyContentRepository()
        engine = _engine(repository, interaction_log)
        for i in range(10):
            _publish(engine, repository, f"tech-{i}", TECH_TEXT, "tech")
        repository.broken.add("tech-3")

        result = engine.recompute_clusters(TWO_TOPIC_CLUSTERING, query=ContentQuery(hashtag="tech"))

        members = {m for c in result.clusters for m in c.member_ids}
        assert members == {f"tech-{i}" for i in range(10)} - {"tech-3"}
        assert result.clusters[0].topics == ["tech"]

    def test_second_pass_records_stability(self, repository, interaction_log):
        engine = _engine(repository, interaction_log)
        for i in range(10):
            _publish(engine, repository, f"tech-{i}", TECH_TEXT, "tech")
        engine.recompute_clusters(TWO_TOPIC_CLUSTERING)
        second = engine.recompute_clusters(TWO_TOPIC_CLUSTERING)
        assert second.clusters[0].stability == pytest.approx(1.0)


class TestSelectAndScore:
    @pytest.fixture(autouse=True)
    def setup(self, repository, interaction_log):
        self.repository = repository
        self.log = interaction_log
        self.engine = _engine(repository, interaction_log, config={"selector": {"match_threshold": -1.0}})
        for i in range(60):
            _publish(self.engine, repository, f"tech-{i}", TECH_TEXT, "tech")
        for i in range(20):
            _publish(self.engine, repository, f"sports-{i}", SPORTS_TEXT, "sports")
        for i in range(50):
            interaction_log.append(make_interaction(i, "u1", f"tech-{i}", hours_ago=1.0 + i * 0.01))

    def test_no_clusters_means_no_candidates(self):
        result = self.engine.select_and_score_candidates("u1", RecommendationContext.at(NOW))
        assert result.no_candidates
        assert result.candidates == []
        assert result.embedding_source == "model"

    def test_tech_fan_sees_tech_first(self):
        self.engine.recompute_clusters(TWO_TOPIC_CLUSTERING)

        result = self.engine.select_and_score_candidates("u1", RecommendationContext.at(NOW))

        assert not result.no_candidates
        assert not result.partial
        assert result.matched_clusters == 2
        ids = [c.id for c in result.candidates]
        assert len(ids) == 30
        assert not {f"tech-{i}" for i in range(50)} & set(ids)
        tech = [i for i, cid in enumerate(ids) if cid.startswith("tech-")]
        sports = [i for i, cid in enumerate(ids) if cid.startswith("sports-")]
        assert len(tech) == 10
        assert len(sports) == 20
        assert max(tech) < min(sports)

    def test_scores_are_ordered_and_bounded(self):
        self.engine.recompute_clusters(TWO_TOPIC_CLUSTERING)
        result = self.engine.select_and_score_candidates("u1", RecommendationContext.at(NOW), limit=5)
        scores = [c.final_score for c in result.candidates]
        assert len(scores) == 5
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)
        assert result.candidates[0].breakdown.affinity is not None

    def test_user_without_vector_matches_on_neutral_score(self):
        self.engine.recompute_clusters(TWO_TOPIC_CLUSTERING)
        result = self.engine.select_and_score_candidates("nobody", RecommendationContext.at(NOW))
        assert result.embedding_source == "error"
        assert result.matched_clusters == 2
        assert len(result.candidates) > 0

    def test_zero_limit_returns_nothing(self):
        self.engine.recompute_clusters(TWO_TOPIC_CLUSTERING)
        result = self.engine.select_and_score_candidates("u1", RecommendationContext.at(NOW), limit=0)
        assert result.candidates == []
        assert not result.partial
