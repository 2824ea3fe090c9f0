"""Application state: config, stores, and the recommendation engine."""

import logging
from typing import Optional

from swipe_engine import RecommendationEngine
from swipe_engine.embedding import OpenAITextEmbedder, TextEmbedder
from swipe_engine.stores import (
    EmbeddingStore,
    InMemoryContentRepository,
    InMemoryEmbeddingStore,
    InMemoryInteractionLog,
    JsonEmbeddingStore,
    QdrantEmbeddingStore,
)

from .config import ServerConfig, get_config

logger = logging.getLogger(__name__)


class AppState:
    """Global application state."""

    def __init__(self, config: ServerConfig, embedder: Optional[TextEmbedder] = None):
        self.config = config
        self.engine_config = config.load_engine_config()

        if embedder is None and config.openai_api_key:
            embedder = OpenAITextEmbedder(
                api_key=config.openai_api_key,
                model=config.embedding_model,
                dimensions=self.engine_config.embedding.dimension,
            )
        if embedder is None:
            logger.warning("[startup] NO_EMBEDDER message=OPENAI_API_KEY not set, using fallback embeddings")
        self.embedder = embedder

        self.content_repository = InMemoryContentRepository()
        self.interaction_log = InMemoryInteractionLog()
        self.user_store = self._create_embedding_store("user")
        self.content_store = self._create_embedding_store("content")
        logger.info(
            "[startup] STORES_READY backend=%s user_store=%s content_store=%s",
            config.embedding_store,
            type(self.user_store).__name__,
            type(self.content_store).__name__,
        )

        self.engine = RecommendationEngine(
            embedder,
            self.content_repository,
            self.interaction_log,
            user_store=self.user_store,
            content_store=self.content_store,
            config=self.engine_config,
        )

    def _create_embedding_store(self, kind: str) -> EmbeddingStore:
        """Create an embedding store for one entity kind (memory, JSON file or Qdrant)."""
        backend = self.config.embedding_store
        if backend == "json":
            return JsonEmbeddingStore(self.config.cache_dir / "embeddings", kind)
        if backend == "qdrant":
            return QdrantEmbeddingStore(
                kind,
                self.engine_config.embedding.dimension,
                qdrant_url=self.config.qdrant_url,
            )
        return InMemoryEmbeddingStore()


_state: Optional[AppState] = None


def get_state() -> AppState:
    global _state
    if _state is None:
        config = get_config()
        _state = AppState(config)
    return _state


def set_state(state: Optional[AppState]) -> None:
    """Replace the global state (tests inject fakes this way)."""
    global _state
    _state = state
