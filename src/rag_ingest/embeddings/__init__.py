"""
Embeddings — turn text into fixed-dimension vectors via a remote service.

Public surface
--------------
- :class:`EmbeddingClient` — single and batch embedding with rate-limit backoff.
- :func:`resolve_provider` — pick OpenRouter or OpenAI from settings.
- :func:`estimate_token_count` — cheap, language-aware token estimate.
- :class:`EmbeddingResult`, :class:`BatchEmbeddingResult` — result models.
"""

from rag_ingest.embeddings.client import EmbeddingClient
from rag_ingest.embeddings.errors import (
    EmbeddingConfigurationError,
    EmbeddingError,
    EmbeddingInputError,
    EmbeddingRemoteError,
    EmbeddingRetriesExhaustedError,
)
from rag_ingest.embeddings.models import (
    BatchEmbeddingResult,
    BatchFailure,
    EmbeddingModelInfo,
    EmbeddingResult,
)
from rag_ingest.embeddings.providers import EmbeddingProvider, resolve_provider
from rag_ingest.embeddings.text import clean_text, estimate_token_count

__all__ = [
    "BatchEmbeddingResult",
    "BatchFailure",
    "EmbeddingClient",
    "EmbeddingConfigurationError",
    "EmbeddingError",
    "EmbeddingInputError",
    "EmbeddingModelInfo",
    "EmbeddingProvider",
    "EmbeddingRemoteError",
    "EmbeddingResult",
    "EmbeddingRetriesExhaustedError",
    "clean_text",
    "estimate_token_count",
    "resolve_provider",
]
