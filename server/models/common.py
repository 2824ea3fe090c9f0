"""Common Pydantic models shared across routes."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from swipe_engine.models.embedding import EmbeddingRecord, UserEmbedding


class EmbeddingResponse(BaseModel):
    entity_id: str
    source: str
    model_version: str
    dimension: int
    updated_at: datetime
    values: Optional[List[float]] = None

    @classmethod
    def from_user_embedding(cls, embedding: UserEmbedding, include_values: bool = False) -> "EmbeddingResponse":
        return cls(
            entity_id=embedding.user_id,
            source=embedding.metadata.source,
            model_version=embedding.metadata.model_version,
            dimension=embedding.vector.dimension,
            updated_at=embedding.vector.updated_at,
            values=embedding.vector.to_list() if include_values else None,
        )

    @classmethod
    def from_record(cls, record: EmbeddingRecord, include_values: bool = False) -> "EmbeddingResponse":
        return cls(
            entity_id=record.entity_id,
            source=record.metadata.source,
            model_version=record.metadata.model_version,
            dimension=record.vector.dimension,
            updated_at=record.vector.updated_at,
            values=record.vector.to_list() if include_values else None,
        )


class CandidateCard(BaseModel):
    id: str
    owner_id: str
    created_at: datetime
    cluster_id: Optional[str] = None
    cluster_score: float
    final_score: float
    tags: List[str] = []
    breakdown: Dict[str, Optional[float]] = {}
    queue_position: Optional[int] = None
