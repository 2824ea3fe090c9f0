"""
Content embedding service — text, tags and engagement counters combined into
one vector per content item (text 0.5, tags 0.3, engagement 0.2).

Text and tag parts fall back to hashed token vectors when the embedder is
unavailable; the engagement part is always numeric. Batch generation skips
failing items and honors a cancellation token between chunks.
"""

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import EmbeddingUnavailable
from ..models.config import EmbeddingSettings
from ..models.content import ContentCounters, ContentSignals
from ..models.embedding import EmbeddingRecord, EmbeddingResult, EmbeddingVector
from ..utils.cancellation import CancellationToken
from ..utils.scores import hours_since
from ..utils.vectors import combine_vectors, normalize_l2, resize_vector
from .feature_text import content_tags_text, content_text, token_hash_vector
from .text_embedder import TextEmbedder, embed_text
from .user_embedding import blend

ENGAGEMENT_FIELDS = ("views", "likes", "comments", "shares", "saves", "avg_watch_time")


class ContentEmbeddingService:
    """
    Usage:
        service = ContentEmbeddingService(embedder, settings)
        result = service.generate(signals)
        results = service.generate_batch(all_signals, token=CancellationToken(60))
    """

    def __init__(
        self,
        embedder: Optional[TextEmbedder],
        settings: Optional[EmbeddingSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.embedder = embedder
        self.settings = settings or EmbeddingSettings()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def dimension(self) -> int:
        return self.settings.dimension

    def engagement_vector(self, counters: ContentCounters) -> List[float]:
        """log10(1 + v) / scale per counter, zero-padded to the dimension."""
        scale = self.settings.engagement_log_scale
        values = [
            math.log10(1.0 + max(float(getattr(counters, name)), 0.0)) / scale
            for name in ENGAGEMENT_FIELDS
        ]
        return resize_vector(values, self.dimension)

    def _text_part(self, text: str, content_id: str, errors: List[str]) -> List[float]:
        if not text:
            return [0.0] * self.dimension
        try:
            return embed_text(self.embedder, text, self.dimension)
        except EmbeddingUnavailable as e:
            errors.append(str(e))
            self.logger.info(
                "[content_embedding] TEXT_FALLBACK content_id=%s error=%s", content_id, e
            )
            return normalize_l2(token_hash_vector(text, self.dimension))

    def generate(self, signals: ContentSignals) -> EmbeddingResult:
        errors: List[str] = []
        text_vec = self._text_part(content_text(signals), signals.content_id, errors)
        tags_vec = self._text_part(content_tags_text(signals), signals.content_id, errors)
        engagement_vec = self.engagement_vector(signals.counters)

        s = self.settings
        combined = normalize_l2(
            combine_vectors(
                [text_vec, tags_vec, engagement_vec],
                [s.content_text_weight, s.content_tags_weight, s.content_engagement_weight],
            )
        )
        vector = EmbeddingVector.from_values(combined)
        details = {"text_empty": not any(text_vec), "tags_empty": not any(tags_vec)}
        if not any(combined):
            return EmbeddingResult(
                vector=vector, source="error", error="no usable signals", details=details
            )
        if errors:
            return EmbeddingResult(
                vector=vector, source="fallback", error="; ".join(errors), details=details
            )
        return EmbeddingResult(vector=vector, source="model", details=details)

    def update(self, current: EmbeddingVector, fresh: Sequence[float]) -> EmbeddingVector:
        """Keep content_update_current_weight (0.7) of the current vector."""
        weight = 1.0 - self.settings.content_update_current_weight
        return current.with_values(blend(current.values, fresh, weight))

    def needs_refresh(self, record: Optional[EmbeddingRecord], now: Optional[datetime] = None) -> bool:
        if record is None:
            return True
        if record.metadata.source in ("fallback", "error"):
            return True
        return hours_since(record.vector.updated_at, now) > self.settings.content_refresh_hours

    def generate_batch(
        self,
        items: Sequence[ContentSignals],
        token: Optional[CancellationToken] = None,
    ) -> Tuple[Dict[str, EmbeddingResult], List[str]]:
        """
        Embed items in chunks of batch_size.

        Returns (results by content id, ids that failed). A cancelled token
        raises OperationCancelled between chunks.
        """
        token = token or CancellationToken.none()
        results: Dict[str, EmbeddingResult] = {}
        failed: List[str] = []
        batch_size = self.settings.batch_size
        total_batches = (len(items) + batch_size - 1) // batch_size

        for start in range(0, len(items), batch_size):
            token.raise_if_cancelled("content embedding batch")
            batch = items[start:start + batch_size]
            for signals in batch:
                try:
                    results[signals.content_id] = self.generate(signals)
                except Exception as e:
                    failed.append(signals.content_id)
                    self.logger.warning(
                        "[content_embedding] ITEM_FAILED content_id=%s error=%s",
                        signals.content_id,
                        e,
                    )
            self.logger.info(
                "[content_embedding] BATCH_DONE batch=%s/%s generated=%s failed=%s",
                start // batch_size + 1,
                total_batches,
                len(results),
                len(failed),
            )
        return results, failed
