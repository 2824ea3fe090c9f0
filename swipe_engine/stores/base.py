"""
Store abstractions.

EmbeddingStore holds derived user/content vectors (recoverable state).
ContentMetadataRepository and InteractionLog are the external collaborators
the engine reads from. Each protocol has an in-memory implementation used
for local runs and tests; swap via server config for persistent backends.
"""

import threading
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Protocol

from ..models.content import ContentMetadata, ContentQuery
from ..models.embedding import EmbeddingMetadata, EmbeddingRecord, EmbeddingVector
from ..models.interaction import UserInteraction


class EmbeddingStore(Protocol):
    """
    Protocol for embedding persistence, one store per entity kind.
    get/put are idempotent and last-write-wins; no merge, no locking.
    """

    def get(self, entity_id: str) -> Optional[EmbeddingVector]:
        ...

    def get_record(self, entity_id: str) -> Optional[EmbeddingRecord]:
        ...

    def put(
        self,
        entity_id: str,
        vector: EmbeddingVector,
        metadata: Optional[EmbeddingMetadata] = None,
    ) -> None:
        ...

    def records(self) -> Iterator[EmbeddingRecord]:
        """Iterate every stored record (snapshot for a clustering pass)."""
        ...

    def count(self) -> int:
        ...


class InMemoryEmbeddingStore:
    """Dict-backed EmbeddingStore. Records are immutable, so readers never see partial writes."""

    def __init__(self, records: Optional[Iterable[EmbeddingRecord]] = None):
        self._lock = threading.Lock()
        self._records: Dict[str, EmbeddingRecord] = {}
        for record in records or ():
            self._records[record.entity_id] = record

    def get(self, entity_id: str) -> Optional[EmbeddingVector]:
        record = self._records.get(entity_id)
        return record.vector if record is not None else None

    def get_record(self, entity_id: str) -> Optional[EmbeddingRecord]:
        return self._records.get(entity_id)

    def put(
        self,
        entity_id: str,
        vector: EmbeddingVector,
        metadata: Optional[EmbeddingMetadata] = None,
    ) -> None:
        record = EmbeddingRecord(
            entity_id=entity_id,
            vector=vector,
            metadata=metadata or EmbeddingMetadata(),
        )
        with self._lock:
            self._records[entity_id] = record

    def records(self) -> Iterator[EmbeddingRecord]:
        with self._lock:
            snapshot = list(self._records.values())
        return iter(snapshot)

    def count(self) -> int:
        return len(self._records)


class ContentMetadataRepository(Protocol):
    """Read access to content metadata. A missing id is a normal skip, not an error."""

    def find(self, content_id: str) -> Optional[ContentMetadata]:
        ...

    def query(self, query: ContentQuery) -> List[ContentMetadata]:
        ...


class InMemoryContentRepository:
    def __init__(self, items: Optional[Iterable[ContentMetadata]] = None):
        self._items: Dict[str, ContentMetadata] = {item.id: item for item in items or ()}

    def add(self, item: ContentMetadata) -> None:
        self._items[item.id] = item

    def find(self, content_id: str) -> Optional[ContentMetadata]:
        return self._items.get(content_id)

    def query(self, query: ContentQuery) -> List[ContentMetadata]:
        return [item for item in self._items.values() if query.matches(item)]


class InteractionLog(Protocol):
    """Append-only interaction log; the system of record."""

    def recent(self, user_id: str, limit: int) -> List[UserInteraction]:
        """Most recent first."""
        ...

    def append(self, interaction: UserInteraction) -> None:
        ...


class InMemoryInteractionLog:
    def __init__(self, interactions: Optional[Iterable[UserInteraction]] = None):
        self._lock = threading.Lock()
        self._by_user: Dict[str, List[UserInteraction]] = defaultdict(list)
        for interaction in interactions or ():
            self.append(interaction)

    def append(self, interaction: UserInteraction) -> None:
        with self._lock:
            self._by_user[interaction.user_id].append(interaction)

    def recent(self, user_id: str, limit: int) -> List[UserInteraction]:
        with self._lock:
            items = list(self._by_user.get(user_id, ()))
        items.sort(key=lambda i: i.timestamp, reverse=True)
        return items[:limit]
