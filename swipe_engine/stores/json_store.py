"""
JSON-file embedding store.

One file per entity kind under the cache directory
(e.g. cache/embeddings/user_embeddings.json). The whole file is rewritten on
every put; suited to local runs and small corpora.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..models.embedding import EmbeddingMetadata, EmbeddingRecord, EmbeddingVector
from .base import InMemoryEmbeddingStore

logger = logging.getLogger(__name__)


class JsonEmbeddingStore(InMemoryEmbeddingStore):
    """
    Usage:
        store = JsonEmbeddingStore(cache_dir, kind="content")
        store.put("post-1", vector, metadata)
        store.get("post-1")
    """

    def __init__(self, cache_dir: Path, kind: str):
        super().__init__()
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.kind = kind
        self.path = self.cache_dir / f"{kind}_embeddings.json"
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("[json_store] LOAD_FAILED path=%s error=%s", self.path, e)
            return
        skipped = 0
        for entity_id, raw in data.get("records", {}).items():
            try:
                record = EmbeddingRecord.model_validate(raw)
            except ValidationError:
                skipped += 1
                continue
            self._records[entity_id] = record
        if skipped:
            logger.warning("[json_store] SKIPPED_RECORDS path=%s count=%s", self.path, skipped)

    def _flush(self) -> None:
        payload = {
            "kind": self.kind,
            "records": {
                entity_id: record.model_dump(mode="json")
                for entity_id, record in self._records.items()
            },
        }
        tmp_path = self.path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(payload, f)
        os.replace(tmp_path, self.path)

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
            self._flush()
