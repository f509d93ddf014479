"""Embedding provider selection — single place to swap providers.

Supports two OpenAI-compatible providers:

1. **OpenRouter** (primary) — set ``OPENROUTER_API_KEY``.  Model names are
   namespaced (``openai/text-embedding-3-small``) and requests carry the
   attribution headers OpenRouter asks for.
2. **OpenAI** (fallback) — set ``OPENAI_API_KEY``.

The provider is resolved once and handed to
:class:`~rag_ingest.embeddings.client.EmbeddingClient`, so tests can pin
either one explicitly.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

from rag_ingest.config import Settings, settings
from rag_ingest.embeddings.errors import EmbeddingConfigurationError

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

ProviderName = Literal["openrouter", "openai"]


class EmbeddingProvider(BaseModel):
    """Connection details for one embedding provider."""

    name: ProviderName
    api_key: str = Field(repr=False)
    model: str
    base_url: str | None = None
    default_headers: dict[str, str] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return "OpenRouter" if self.name == "openrouter" else "OpenAI"


def openrouter_provider(config: Settings) -> EmbeddingProvider:
    model = config.embedding_model
    if "/" not in model:
        model = f"openai/{model}"
    return EmbeddingProvider(
        name="openrouter",
        api_key=config.openrouter_api_key,
        model=model,
        base_url=OPENROUTER_BASE_URL,
        default_headers={"HTTP-Referer": config.app_url, "X-Title": config.app_title},
    )


def openai_provider(config: Settings) -> EmbeddingProvider:
    return EmbeddingProvider(
        name="openai",
        api_key=config.openai_api_key,
        model=config.embedding_model,
    )


def resolve_provider(config: Settings | None = None) -> EmbeddingProvider:
    """Return the provider selected by *config* (defaults to the global settings).

    ``embedding_provider="auto"`` prefers OpenRouter when its key is set and
    falls back to OpenAI.  An explicit choice must have its key set.

    Raises
    ------
    EmbeddingConfigurationError
        When the selected provider has no API key.
    """
    config = config or settings
    choice = config.embedding_provider

    if choice == "auto":
        if config.openrouter_api_key:
            choice = "openrouter"
        elif config.openai_api_key:
            choice = "openai"
        else:
            raise EmbeddingConfigurationError(
                "No API key for embeddings. Set OPENROUTER_API_KEY or OPENAI_API_KEY."
            )

    if choice == "openrouter":
        if not config.openrouter_api_key:
            raise EmbeddingConfigurationError("EMBEDDING_PROVIDER=openrouter requires OPENROUTER_API_KEY.")
        provider = openrouter_provider(config)
    elif choice == "openai":
        if not config.openai_api_key:
            raise EmbeddingConfigurationError("EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY.")
        provider = openai_provider(config)
    else:
        raise EmbeddingConfigurationError(f"Unknown embedding provider: {choice!r}")

    logger.info("Using %s embeddings (model=%s)", provider.display_name, provider.model)
    return provider
