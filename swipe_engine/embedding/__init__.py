"""Embedding services and the TextEmbedder capability."""

from .content_embedding import ContentEmbeddingService
from .feature_text import (
    content_tags_text,
    interaction_feature_text,
    onboarding_feature_text,
    user_feature_text,
)
from .text_embedder import OpenAITextEmbedder, TextEmbedder, embed_text
from .user_embedding import UserEmbeddingService, blend
