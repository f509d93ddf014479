"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding provider credentials
    openrouter_api_key: str = Field(default="", description="OpenRouter API key (primary provider)")
    openai_api_key: str = Field(default="", description="OpenAI API key (fallback provider)")
    embedding_provider: Literal["auto", "openrouter", "openai"] = Field(
        default="auto",
        description=(
            "Which embedding provider to use. 'auto' picks OpenRouter when "
            "OPENROUTER_API_KEY is set and OpenAI otherwise."
        ),
    )

    # Embedding model
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = Field(default=1536, gt=0)
    embedding_batch_size: int = Field(default=100, gt=0)
    embedding_max_retries: int = Field(default=3, gt=0)
    embedding_retry_base_delay: float = Field(default=1.0, ge=0, description="Seconds")
    embedding_max_chars: int = Field(default=30_000, gt=0)
    embedding_timeout: float = Field(default=30.0, gt=0, description="Seconds per request")

    # Attribution headers sent to OpenRouter
    app_url: str = "http://localhost:3000"
    app_title: str = "rag-ingest"

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# Singleton — import `settings` wherever needed.
settings = Settings()
