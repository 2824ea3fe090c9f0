"""
Qdrant Embedding Store

Stores user or content embeddings in a Qdrant collection, one collection
per entity kind (e.g. swipe_user_embeddings, swipe_content_embeddings).

Qdrant normalizes vectors in COSINE collections, so the exact values are
also kept in the payload and reads come from there; the indexed vector is
used for similarity search.
"""

import logging
import time
import uuid
from typing import Iterator, List, Optional, Tuple

from qdrant_client import QdrantClient
from qdrant_client.http import models

from ..models.embedding import EmbeddingMetadata, EmbeddingRecord, EmbeddingVector

logger = logging.getLogger(__name__)


def point_id_for(entity_id: str) -> str:
    """Qdrant point ids must be ints or UUIDs; derive a stable UUID."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"swipe-engine:{entity_id}"))


class QdrantEmbeddingStore:
    """
    Usage:
        store = QdrantEmbeddingStore(kind="content", dimension=128, qdrant_url="http://localhost:6333")
        store.put("post-1", vector, metadata)
        store.search_similar(user_vector, limit=50)
    """

    MAX_RETRIES = 3
    RETRY_DELAY = 1.0  # seconds
    SCROLL_BATCH = 100

    def __init__(
        self,
        kind: str,
        dimension: int,
        qdrant_url: Optional[str] = None,
        client: Optional[QdrantClient] = None,
        collection_prefix: str = "swipe",
        timeout: float = 30.0,
    ):
        self.kind = kind
        self.dimension = dimension
        self.qdrant_url = qdrant_url or "http://localhost:6333"
        self.timeout = timeout
        self.collection_name = f"{collection_prefix}_{kind}_embeddings"
        self._client = client
        self._collection_ready = False

    @property
    def client(self) -> QdrantClient:
        """Get or create the Qdrant client with connection retry."""
        if self._client is None:
            for attempt in range(self.MAX_RETRIES):
                try:
                    self._client = QdrantClient(url=self.qdrant_url, timeout=self.timeout)
                    self._client.get_collections()
                    break
                except Exception as e:
                    self._client = None
                    if attempt < self.MAX_RETRIES - 1:
                        time.sleep(self.RETRY_DELAY)
                    else:
                        raise ConnectionError(
                            f"Failed to connect to Qdrant at {self.qdrant_url}: {e}"
                        ) from e
        return self._client

    def _ensure_collection(self) -> None:
        if self._collection_ready:
            return
        collections = self.client.get_collections().collections
        if not any(c.name == self.collection_name for c in collections):
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(
                    size=self.dimension,
                    distance=models.Distance.COSINE,
                ),
            )
            logger.info("[qdrant_store] COLLECTION_CREATED name=%s dim=%s", self.collection_name, self.dimension)
        self._collection_ready = True

    @staticmethod
    def _record_from_payload(payload: dict) -> EmbeddingRecord:
        return EmbeddingRecord(
            entity_id=payload["entity_id"],
            vector=EmbeddingVector(
                dimension=len(payload["values"]),
                values=tuple(payload["values"]),
                created_at=payload["created_at"],
                updated_at=payload["updated_at"],
            ),
            metadata=EmbeddingMetadata.model_validate(payload.get("metadata") or {}),
        )

    def get_record(self, entity_id: str) -> Optional[EmbeddingRecord]:
        self._ensure_collection()
        points = self.client.retrieve(
            collection_name=self.collection_name,
            ids=[point_id_for(entity_id)],
            with_payload=True,
            with_vectors=False,
        )
        if not points:
            return None
        return self._record_from_payload(points[0].payload)

    def get(self, entity_id: str) -> Optional[EmbeddingVector]:
        record = self.get_record(entity_id)
        return record.vector if record is not None else None

    def put(
        self,
        entity_id: str,
        vector: EmbeddingVector,
        metadata: Optional[EmbeddingMetadata] = None,
    ) -> None:
        self._ensure_collection()
        metadata = metadata or EmbeddingMetadata()
        self.client.upsert(
            collection_name=self.collection_name,
            points=[
                models.PointStruct(
                    id=point_id_for(entity_id),
                    vector=list(vector.values),
                    payload={
                        "entity_id": entity_id,
                        "values": list(vector.values),
                        "created_at": vector.created_at.isoformat(),
                        "updated_at": vector.updated_at.isoformat(),
                        "metadata": metadata.model_dump(mode="json"),
                    },
                )
            ],
        )

    def records(self) -> Iterator[EmbeddingRecord]:
        self._ensure_collection()
        offset = None
        while True:
            points, next_offset = self.client.scroll(
                collection_name=self.collection_name,
                limit=self.SCROLL_BATCH,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            for point in points:
                yield self._record_from_payload(point.payload)
            if next_offset is None:
                break
            offset = next_offset

    def count(self) -> int:
        self._ensure_collection()
        return self.client.count(collection_name=self.collection_name, exact=True).count

    def search_similar(self, vector: List[float], limit: int = 10) -> List[Tuple[str, float]]:
        """(entity_id, cosine score) pairs, best first."""
        self._ensure_collection()
        response = self.client.query_points(
            collection_name=self.collection_name,
            query=list(vector),
            limit=limit,
            with_payload=True,
        )
        return [(point.payload["entity_id"], point.score) for point in response.points]
