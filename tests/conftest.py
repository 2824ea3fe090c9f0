"""
Shared fixtures and deterministic fakes.

FakeTextEmbedder hashes tokens into a fixed number of slots, so texts that
share hashtags land close together without any network access.
"""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from swipe_engine.embedding.feature_text import token_hash_vector
from swipe_engine.models import ContentCounters, ContentMetadata, UserInteraction
from swipe_engine.stores import InMemoryContentRepository, InMemoryInteractionLog
from swipe_engine.utils.vectors import normalize_l2

NOW = datetime.now(timezone.utc).replace(microsecond=0)


class FakeTextEmbedder:
    model_name = "fake-hash-embedder"

    def __init__(self, dimension: int = 128):
        self.dimension = dimension
        self.calls = 0

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        return normalize_l2(token_hash_vector(text, self.dimension))


class FailingEmbedder:
    model_name = "failing-embedder"

    def __init__(self):
        self.calls = 0

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        raise RuntimeError("embedder down")


class FlakyContentRepository(InMemoryContentRepository):
    """Lookups for `broken` ids raise, like a metadata backend timing out."""

    def __init__(self, items=None, broken=()):
        super().__init__(items)
        self.broken = set(broken)

    def find(self, content_id):
        if content_id in self.broken:
            raise ConnectionError(f"metadata lookup failed for {content_id}")
        return super().find(content_id)


def make_content(content_id: str, tags, owner_id: str = "creator-1", hours_old: float = 2.0, **kwargs) -> ContentMetadata:
    return ContentMetadata(
        id=content_id,
        owner_id=owner_id,
        created_at=kwargs.pop("created_at", NOW - timedelta(hours=hours_old)),
        counters=kwargs.pop("counters", ContentCounters(views=100, likes=10)),
        tags=list(tags),
        **kwargs,
    )


def make_interaction(index: int, user_id: str, entity_id: str, kind: str = "like", topics=("tech",), hours_ago: float = 1.0, **metadata) -> UserInteraction:
    return UserInteraction(
        id=f"{user_id}-i{index}",
        user_id=user_id,
        entity_id=entity_id,
        type=kind,
        timestamp=NOW - timedelta(hours=hours_ago),
        topics=list(topics),
        metadata=metadata,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fake_embedder():
    return FakeTextEmbedder()


@pytest.fixture
def failing_embedder():
    return FailingEmbedder()


@pytest.fixture
def repository():
    return InMemoryContentRepository()


@pytest.fixture
def interaction_log():
    return InMemoryInteractionLog()
