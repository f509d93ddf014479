"""Async embedding client for OpenAI-compatible ``/embeddings`` endpoints.

Usage::

    from rag_ingest.embeddings import EmbeddingClient

    async with EmbeddingClient() as client:
        vector = await client.generate_embedding("What is VAT in Rwanda?")
        batch = await client.generate_batch_embeddings(["first text", "second text"])
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Sequence

import openai

from rag_ingest.config import Settings, settings
from rag_ingest.embeddings.errors import (
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
from rag_ingest.embeddings.retry import RateLimitRetry
from rag_ingest.embeddings.text import clean_text, estimate_token_count

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Generate embeddings with rate-limit backoff and per-batch failure isolation.

    The provider is resolved at construction time, so a missing credential
    fails here rather than on the first request.  The underlying
    ``openai.AsyncOpenAI`` handle is created on first use and reused for the
    lifetime of this object.

    Parameters
    ----------
    provider:
        Explicit provider.  When *None*, resolved from *config*.
    config:
        Settings to read limits from (defaults to the global settings).
    retry:
        Backoff policy.  When *None*, built from *config*.
    sdk_client:
        Pre-built SDK handle, mainly for tests.
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None = None,
        *,
        config: Settings | None = None,
        retry: RateLimitRetry | None = None,
        sdk_client: Any | None = None,
    ) -> None:
        config = config or settings
        self.provider = provider or resolve_provider(config)
        self.dimensions = config.embedding_dimensions
        self.batch_size = config.embedding_batch_size
        self.max_chars = config.embedding_max_chars
        self.timeout = config.embedding_timeout
        self._retry = retry or RateLimitRetry(
            max_attempts=config.embedding_max_retries,
            base_delay=config.embedding_retry_base_delay,
        )
        self._sdk = sdk_client
        self._sdk_lock = threading.Lock()

    # -- lifecycle ------------------------------------------------------------

    @property
    def sdk(self) -> Any:
        """The shared SDK handle, created once on first access."""
        if self._sdk is None:
            with self._sdk_lock:
                if self._sdk is None:
                    logger.debug("Creating %s embeddings client", self.provider.display_name)
                    self._sdk = openai.AsyncOpenAI(
                        api_key=self.provider.api_key,
                        base_url=self.provider.base_url,
                        timeout=self.timeout,
                        # Backoff is handled by RateLimitRetry.
                        max_retries=0,
                        default_headers=self.provider.default_headers or None,
                    )
        return self._sdk

    async def aclose(self) -> None:
        if self._sdk is not None:
            await self._sdk.close()
            self._sdk = None

    async def __aenter__(self) -> EmbeddingClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def model_info(self) -> EmbeddingModelInfo:
        return EmbeddingModelInfo(
            model=self.provider.model,
            provider=self.provider.display_name,
            dimensions=self.dimensions,
            max_batch_size=self.batch_size,
        )

    # -- public API -----------------------------------------------------------

    async def generate_embedding(self, text: str) -> list[float]:
        """Embed a single text.

        Raises
        ------
        EmbeddingInputError
            If *text* is empty or only whitespace/control characters.
        EmbeddingRetriesExhaustedError
            If every attempt was rate limited.
        EmbeddingRemoteError
            For any other service failure, or a vector of the wrong size.
        """
        if not text or not text.strip():
            raise EmbeddingInputError("Cannot generate embedding for empty text")

        cleaned = clean_text(text, self.max_chars)
        if not cleaned:
            raise EmbeddingInputError("Text is empty after normalisation")

        try:
            response = await self._retry.call(self._create, cleaned, operation_name="Embedding request")
        except openai.OpenAIError as exc:
            raise _remote_error(exc) from exc

        data = sorted(response.data, key=lambda item: item.index)
        if not data:
            raise EmbeddingRemoteError("Embedding response contained no data")

        embedding = list(data[0].embedding)
        if len(embedding) != self.dimensions:
            raise EmbeddingRemoteError(
                f"Embedding has {len(embedding)} dimensions, expected {self.dimensions}"
            )

        logger.debug(
            "Generated embedding (chars=%d, tokens=%s)",
            len(cleaned),
            _usage_tokens(response),
        )
        return embedding

    async def generate_batch_embeddings(
        self,
        texts: Sequence[str],
        batch_size: int | None = None,
    ) -> BatchEmbeddingResult:
        """Embed *texts* in sequential sub-batches.

        A failing sub-batch marks its own indices as failed and never aborts
        the remaining sub-batches.

        Parameters
        ----------
        texts:
            Texts to embed.
        batch_size:
            Maximum texts per request (defaults to ``embedding_batch_size``).

        Returns
        -------
        BatchEmbeddingResult
            Every input index appears either in ``results`` or in
            ``failed_indices``.
        """
        result = BatchEmbeddingResult()
        if not texts:
            return result

        size = self.batch_size if batch_size is None else batch_size
        if size < 1:
            raise ValueError(f"batch_size must be >= 1, got {size}")

        for batch_number, start in enumerate(range(0, len(texts), size)):
            await self._embed_sub_batch(texts[start : start + size], start, batch_number, result)

        result.failed_indices = sorted(result.failed_indices)
        logger.info(
            "Batch embedding complete: total=%d successful=%d failed=%d tokens=%d",
            len(texts),
            len(result.results),
            len(result.failed_indices),
            result.total_tokens,
        )
        return result

    # -- internals ------------------------------------------------------------

    async def _create(self, inputs: str | list[str]) -> Any:
        return await self.sdk.embeddings.create(
            model=self.provider.model,
            input=inputs,
            encoding_format="float",
        )

    async def _embed_sub_batch(
        self,
        batch: Sequence[str],
        start: int,
        batch_number: int,
        result: BatchEmbeddingResult,
    ) -> None:
        valid: list[tuple[str, int]] = []
        empty: list[int] = []
        for offset, text in enumerate(batch):
            cleaned = clean_text(text, self.max_chars) if isinstance(text, str) else ""
            if cleaned:
                valid.append((cleaned, start + offset))
            else:
                empty.append(start + offset)

        if empty:
            _record_failure(result, empty, "empty after normalisation")
        if not valid:
            return

        try:
            response = await self._retry.call(
                self._create,
                [text for text, _ in valid],
                operation_name=f"Embedding sub-batch {batch_number}",
            )
        except (openai.OpenAIError, EmbeddingRetriesExhaustedError) as exc:
            logger.error(
                "Batch embedding failed (sub-batch=%d, size=%d): %s",
                batch_number,
                len(valid),
                exc,
            )
            _record_failure(result, [index for _, index in valid], str(exc))
            return

        embedded: set[int] = set()
        for item in sorted(response.data, key=lambda item: item.index):
            position = item.index
            if not 0 <= position < len(valid) or position in embedded:
                continue
            if len(item.embedding) != self.dimensions:
                continue
            embedded.add(position)
            text, original_index = valid[position]
            result.results.append(
                EmbeddingResult(
                    text=text,
                    embedding=list(item.embedding),
                    token_count=estimate_token_count(text),
                    index=original_index,
                )
            )

        missing = [index for position, (_, index) in enumerate(valid) if position not in embedded]
        if missing:
            logger.warning(
                "Sub-batch %d returned %d missing or malformed embeddings",
                batch_number,
                len(missing),
            )
            _record_failure(result, missing, "missing or malformed embedding in response")

        result.total_tokens += _usage_tokens(response)


def _record_failure(result: BatchEmbeddingResult, indices: list[int], reason: str) -> None:
    result.failed_indices.extend(indices)
    result.failures.append(BatchFailure(indices=indices, reason=reason))


def _usage_tokens(response: Any) -> int:
    usage = getattr(response, "usage", None)
    return getattr(usage, "total_tokens", 0) or 0


def _remote_error(exc: openai.OpenAIError) -> EmbeddingRemoteError:
    return EmbeddingRemoteError(
        f"Embedding request failed: {exc}",
        status_code=getattr(exc, "status_code", None),
    )
