"""Embedding stores and the external collaborator protocols."""

from .base import (
    ContentMetadataRepository,
    EmbeddingStore,
    InMemoryContentRepository,
    InMemoryEmbeddingStore,
    InMemoryInteractionLog,
    InteractionLog,
)
from .json_store import JsonEmbeddingStore
from .qdrant_store import QdrantEmbeddingStore
