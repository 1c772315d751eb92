"""Embedding service module."""

from agrisearch.embeddings.models import EmbeddingResult
from agrisearch.embeddings.service import (
    EmbeddingService,
    FastEmbedService,
    HTTPEmbeddingService,
    preprocess_text,
)

__all__ = [
    "EmbeddingResult",
    "EmbeddingService",
    "FastEmbedService",
    "HTTPEmbeddingService",
    "preprocess_text",
]
