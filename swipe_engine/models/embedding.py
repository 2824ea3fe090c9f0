"""
Embedding models: immutable vectors plus the user/content records that
carry them.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..utils.scores import utcnow

EmbeddingSource = Literal["model", "fallback", "error", "update", "initial"]


class EmbeddingVector(BaseModel):
    """Fixed-size vector. Frozen: updates always produce a new instance."""

    model_config = ConfigDict(frozen=True)

    dimension: int
    values: Tuple[float, ...]
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def values_match_dimension(self):
        if len(self.values) != self.dimension:
            raise ValueError(
                f"EmbeddingVector has {len(self.values)} values for dimension {self.dimension}"
            )
        return self

    @classmethod
    def from_values(
        cls,
        values: Sequence[float],
        created_at: Optional[datetime] = None,
    ) -> "EmbeddingVector":
        now = utcnow()
        return cls(
            dimension=len(values),
            values=tuple(float(x) for x in values),
            created_at=created_at or now,
            updated_at=now,
        )

    @classmethod
    def zeros(cls, dimension: int) -> "EmbeddingVector":
        return cls.from_values([0.0] * dimension)

    def with_values(self, values: Sequence[float]) -> "EmbeddingVector":
        """New vector that keeps this one's creation time."""
        return EmbeddingVector.from_values(values, created_at=self.created_at)

    def to_list(self) -> List[float]:
        return list(self.values)

    def to_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=float)

    @property
    def is_zero(self) -> bool:
        return not any(self.values)


class EmbeddingMetadata(BaseModel):
    """Provenance for a stored embedding. Extra keys are kept."""

    model_config = ConfigDict(extra="allow")

    source: EmbeddingSource = "model"
    model_version: str = "unknown"
    generated_at: datetime = Field(default_factory=utcnow)
    error: Optional[str] = None


class EmbeddingRecord(BaseModel):
    """What an EmbeddingStore holds per entity id."""

    entity_id: str
    vector: EmbeddingVector
    metadata: EmbeddingMetadata = Field(default_factory=EmbeddingMetadata)


class UserEmbedding(BaseModel):
    user_id: str
    vector: EmbeddingVector
    metadata: EmbeddingMetadata = Field(default_factory=EmbeddingMetadata)


class ContentEmbedding(BaseModel):
    content_id: str
    vector: EmbeddingVector
    metadata: EmbeddingMetadata = Field(default_factory=EmbeddingMetadata)


class EmbeddingResult(BaseModel):
    """
    Outcome of an embedding generation.

    `source` tells which branch produced the vector: the text model, the
    deterministic numeric fallback, or the zero-vector error path.
    """

    vector: EmbeddingVector
    source: Literal["model", "fallback", "error"]
    error: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def used_fallback(self) -> bool:
        return self.source != "model"
