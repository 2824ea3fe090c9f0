"""
API Server Tests

Exercises the HTTP surface against an in-memory state with a deterministic
embedder: content registration, interactions, clustering passes and
recommendations.

Run:
----
    pytest tests/test_server.py -v
"""

import json

import pytest
from fastapi.testclient import TestClient

from server import AppState, ServerConfig, create_app, set_state

from .conftest import NOW, FakeTextEmbedder

TECH_TEXT = "#tech gadgets software"
SPORTS_TEXT = "#sports football match"
CLUSTERING = {"algorithm": "dbscan", "distance_function": "cosine", "epsilon": 0.3, "min_points": 3}


@pytest.fixture
def state(tmp_path):
    state = AppState(ServerConfig(cache_dir=tmp_path), embedder=FakeTextEmbedder())
    set_state(state)
    yield state
    set_state(None)


@pytest.fixture
def client(state):
    with TestClient(create_app()) as c:
        yield c


def _register(client, content_id, text, tag):
    response = client.post(
        "/api/content",
        json={
            "id": content_id,
            "owner_id": "creator-1",
            "text": text,
            "tags": [tag],
            "created_at": NOW.isoformat(),
            "counters": {"views": 100, "likes": 10},
        },
    )
    assert response.status_code == 200
    return response.json()


def _seed_corpus(client):
    for i in range(12):
        _register(client, f"tech-{i}", TECH_TEXT, "tech")
        _register(client, f"sports-{i}", SPORTS_TEXT, "sports")


class TestRoot:
    def test_root_before_clustering(self, client):
        body = client.get("/").json()
        assert body["name"] == "Swipe Engine API"
        assert body["status"] == "no_clusters"
        assert body["embedder"] == "FakeTextEmbedder"
        assert body["store"] == "memory"

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["embedder"]["available"] is True
        assert body["clusters"] == 0


class TestContent:
    def test_register_and_fetch_embedding(self, client):
        assert _register(client, "tech-1", TECH_TEXT, "tech")["source"] == "model"

        body = client.get("/api/content/tech-1/embedding", params={"include_values": True}).json()
        assert body["entity_id"] == "tech-1"
        assert body["dimension"] == 128
        assert len(body["values"]) == 128

    def test_unknown_content_embedding(self, client):
        assert client.get("/api/content/missing/embedding").status_code == 404


class TestUsers:
    def test_onboarding_embedding(self, client):
        response = client.post(
            "/api/users/u1/embedding", json={"onboarding": {"interests": ["tech"]}}
        )
        assert response.status_code == 200
        assert response.json()["source"] == "initial"
        assert client.get("/api/users/u1/embedding").json()["source"] == "initial"

    def test_embedding_without_history_is_error_source(self, client):
        response = client.post("/api/users/u1/embedding")
        assert response.status_code == 200
        assert response.json()["source"] == "error"

    def test_missing_user_embedding(self, client):
        assert client.get("/api/users/nobody/embedding").status_code == 404

    def test_interaction_on_unknown_content(self, client):
        response = client.post(
            "/api/users/u1/interactions", json={"entity_id": "missing", "type": "like"}
        )
        assert response.status_code == 404

    def test_interaction_defaults_topics_and_classifies_views(self, client, state):
        _register(client, "tech-1", TECH_TEXT, "tech")

        response = client.post(
            "/api/users/u1/interactions",
            json={"id": "i-1", "entity_id": "tech-1", "type": "view", "duration_seconds": 45},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["interaction_id"] == "i-1"
        assert body["type"] == "long_view"
        logged = state.interaction_log.recent("u1", 10)[0]
        assert logged.topics == ["tech"]
        assert logged.metadata["owner_id"] == "creator-1"
        assert logged.metadata["duration"] == 45

    def test_short_view(self, client):
        _register(client, "tech-1", TECH_TEXT, "tech")
        response = client.post(
            "/api/users/u1/interactions",
            json={"entity_id": "tech-1", "type": "view", "duration_seconds": 3, "watch_percentage": 10},
        )
        assert response.json()["type"] == "short_view"

    def test_invalid_interaction(self, client):
        _register(client, "tech-1", TECH_TEXT, "tech")
        response = client.post(
            "/api/users/u1/interactions",
            json={"entity_id": "tech-1", "type": "view", "watch_percentage": 150},
        )
        assert response.status_code == 422


class TestClusters:
    def test_invalid_parameters_rejected(self, client):
        response = client.post("/api/clusters/recompute", json={"config": {"algorithm": "dbscan", "epsilon": 0}})
        assert response.status_code == 400
        assert "epsilon" in response.json()["detail"]

    def test_unknown_algorithm_rejected(self, client):
        response = client.post("/api/clusters/recompute", json={"config": {"algorithm": "spectral"}})
        assert response.status_code == 400

    def test_recompute(self, client):
        _seed_corpus(client)

        response = client.post("/api/clusters/recompute", json={"config": CLUSTERING})

        assert response.status_code == 200
        body = response.json()
        assert body["algorithm"] == "dbscan"
        assert sorted(c["topics"][0] for c in body["clusters"]) == ["sports", "tech"]
        assert len(client.get("/api/clusters").json()) == 2
        assert client.get("/").json()["status"] == "ready"


class TestRecommendations:
    @pytest.fixture
    def open_client(self, tmp_path):
        # Every cluster is matched, so weakly related clusters still fill the feed.
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"selector": {"match_threshold": -1.0}}))
        set_state(AppState(ServerConfig(cache_dir=tmp_path, engine_config_path=path), embedder=FakeTextEmbedder()))
        with TestClient(create_app()) as c:
            yield c
        set_state(None)

    def test_unknown_user(self, client):
        assert client.get("/api/users/nobody/recommendations").status_code == 404

    def test_recommendations_follow_interactions(self, open_client):
        client = open_client
        _seed_corpus(client)
        client.post("/api/clusters/recompute", json={"config": CLUSTERING})
        for i in range(8):
            client.post("/api/users/u1/interactions", json={"entity_id": f"tech-{i}", "type": "like"})

        response = client.get("/api/users/u1/recommendations", params={"limit": 10, "hour": 20})

        assert response.status_code == 200
        body = response.json()
        assert body["no_candidates"] is False
        ids = [c["id"] for c in body["candidates"]]
        assert len(ids) == 10
        assert not {f"tech-{i}" for i in range(8)} & set(ids)
        assert [c["queue_position"] for c in body["candidates"]] == list(range(1, 11))
        first = body["candidates"][0]
        assert set(first["breakdown"]) >= {"affinity", "temporal", "novelty", "diversity", "quality", "engagement"}

    def test_default_threshold_drops_unrelated_cluster(self, client):
        _seed_corpus(client)
        client.post("/api/clusters/recompute", json={"config": CLUSTERING})
        for i in range(8):
            client.post("/api/users/u1/interactions", json={"entity_id": f"tech-{i}", "type": "like"})

        body = client.get("/api/users/u1/recommendations", params={"limit": 10}).json()

        # Fewer than requested: only the unseen tech posts are close enough.
        assert sorted(c["id"] for c in body["candidates"]) == [f"tech-{i}" for i in (10, 11, 8, 9)]

    def test_no_clusters(self, client):
        _register(client, "tech-1", TECH_TEXT, "tech")
        client.post("/api/users/u1/interactions", json={"entity_id": "tech-1", "type": "like"})
        body = client.get("/api/users/u1/recommendations").json()
        assert body["no_candidates"] is True
        assert body["candidates"] == []


class TestServerConfig:
    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("EMBEDDING_STORE", "JSON")
        monkeypatch.setenv("PORT", "9001")
        monkeypatch.setenv("CACHE_DIR", str(tmp_path))
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config = ServerConfig.from_env()
        assert config.embedding_store == "json"
        assert config.port == 9001
        assert config.cache_dir == tmp_path
        assert config.openai_api_key is None

    def test_unknown_store_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_STORE", "redis")
        assert ServerConfig.from_env().embedding_store == "memory"

    def test_validate(self, tmp_path):
        ok, errors = ServerConfig(embedding_store="qdrant", engine_config_path=tmp_path / "nope.json").validate()
        assert not ok
        assert len(errors) == 2

    def test_engine_config_file(self, tmp_path):
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"selector": {"default_limit": 7}, "unknown": 1}))
        config = ServerConfig(engine_config_path=path)
        assert config.load_engine_config().selector.default_limit == 7

    def test_json_store_state(self, tmp_path):
        config = ServerConfig(embedding_store="json", cache_dir=tmp_path)
        config.ensure_directories()
        state = AppState(config, embedder=FakeTextEmbedder())
        assert type(state.user_store).__name__ == "JsonEmbeddingStore"
        assert (tmp_path / "embeddings").is_dir()
