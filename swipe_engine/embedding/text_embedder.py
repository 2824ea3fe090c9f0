"""
Text embedder — the injected capability that maps text to a vector.

The engine only depends on the TextEmbedder protocol. OpenAITextEmbedder is
the production implementation; tests inject deterministic fakes.
"""

import math
import os
from typing import List, Optional, Protocol, Sequence

from openai import OpenAI

from ..errors import EmbeddingUnavailable
from ..utils.vectors import normalize_l2, resize_vector


class TextEmbedder(Protocol):
    """Maps text to a fixed-size float vector. May raise on any failure."""

    model_name: str

    def embed(self, text: str) -> List[float]:
        ...


class OpenAITextEmbedder:
    """
    TextEmbedder backed by the OpenAI embeddings API.

    Usage:
        embedder = OpenAITextEmbedder(api_key="sk-...", dimensions=128)
        vector = embedder.embed("like content about #tech")
    """

    DEFAULT_MODEL = "text-embedding-3-small"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        dimensions: Optional[int] = None,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.dimensions = dimensions
        self._client = client

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def client(self) -> OpenAI:
        """Lazy-load OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise EmbeddingUnavailable(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def _create(self, texts: Sequence[str]):
        kwargs = {"model": self.model, "input": list(texts)}
        if self.dimensions is not None:
            kwargs["dimensions"] = self.dimensions
        return self.client.embeddings.create(**kwargs)

    def embed(self, text: str) -> List[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        response = self._create(texts)
        return [list(item.embedding) for item in response.data]


def validate_embedding(values: Sequence[float]) -> List[float]:
    """Reject empty or non-finite embedder output."""
    out = [float(x) for x in values]
    if not out:
        raise EmbeddingUnavailable("Embedder returned an empty vector")
    if not all(math.isfinite(x) for x in out):
        raise EmbeddingUnavailable("Embedder returned non-finite values")
    return out


def embed_text(embedder: Optional[TextEmbedder], text: str, dimension: int) -> List[float]:
    """
    Embed text, resize to `dimension` and L2-normalize.

    Every failure (no embedder, empty text, embedder error, bad output) is
    raised as EmbeddingUnavailable so callers have one fallback branch.
    """
    if embedder is None:
        raise EmbeddingUnavailable("No text embedder configured")
    if not text.strip():
        raise EmbeddingUnavailable("No feature text to embed")
    try:
        raw = embedder.embed(text)
    except EmbeddingUnavailable:
        raise
    except Exception as e:
        raise EmbeddingUnavailable(f"{type(e).__name__}: {e}") from e
    values = validate_embedding(raw)
    return normalize_l2(resize_vector(values, dimension))
