"""Unit tests for the embedding client, retry policy and provider selection.

All tests run without network access: the OpenAI SDK handle is replaced by
``FakeEmbeddingsAPI`` (see ``conftest.py``) and backoff sleeps are recorded
instead of awaited.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import openai
import pytest

from rag_ingest.config import Settings
from rag_ingest.embeddings.client import EmbeddingClient
from rag_ingest.embeddings.errors import (
    EmbeddingConfigurationError,
    EmbeddingInputError,
    EmbeddingRemoteError,
    EmbeddingRetriesExhaustedError,
)
from rag_ingest.embeddings.models import BatchEmbeddingResult
from rag_ingest.embeddings.providers import OPENROUTER_BASE_URL, resolve_provider
from rag_ingest.embeddings.retry import is_rate_limit_error


def _settings(**overrides) -> Settings:
    values = {"openai_api_key": "", "openrouter_api_key": "", "embedding_provider": "auto"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ── rate-limit classification ──────────────────────────────────────────


class TestIsRateLimitError:
    def test_sdk_rate_limit_error(self, status_error) -> None:
        assert is_rate_limit_error(status_error(429)) is True

    def test_message_markers(self) -> None:
        assert is_rate_limit_error(RuntimeError("Rate limit reached for requests")) is True
        assert is_rate_limit_error(RuntimeError("HTTP 429 Too Many Requests")) is True

    def test_other_errors(self, status_error) -> None:
        assert is_rate_limit_error(status_error(500)) is False
        assert is_rate_limit_error(ValueError("bad input")) is False


# ── provider selection ─────────────────────────────────────────────────


class TestResolveProvider:
    def test_auto_prefers_openrouter(self) -> None:
        provider = resolve_provider(_settings(openrouter_api_key="or-key", openai_api_key="sk-key"))
        assert provider.name == "openrouter"
        assert provider.api_key == "or-key"
        assert provider.model == "openai/text-embedding-3-small"
        assert provider.base_url == OPENROUTER_BASE_URL
        assert set(provider.default_headers) == {"HTTP-Referer", "X-Title"}

    def test_auto_falls_back_to_openai(self) -> None:
        provider = resolve_provider(_settings(openai_api_key="sk-key"))
        assert provider.name == "openai"
        assert provider.model == "text-embedding-3-small"
        assert provider.base_url is None

    def test_explicit_openai_ignores_openrouter_key(self) -> None:
        provider = resolve_provider(
            _settings(openrouter_api_key="or-key", openai_api_key="sk-key", embedding_provider="openai")
        )
        assert provider.name == "openai"

    def test_no_key_fails_fast(self) -> None:
        with pytest.raises(EmbeddingConfigurationError, match="OPENROUTER_API_KEY"):
            resolve_provider(_settings())

    def test_explicit_provider_without_key(self) -> None:
        with pytest.raises(EmbeddingConfigurationError):
            resolve_provider(_settings(openai_api_key="sk-key", embedding_provider="openrouter"))

    def test_api_key_not_in_repr(self) -> None:
        provider = resolve_provider(_settings(openai_api_key="sk-secret"))
        assert "sk-secret" not in repr(provider)


# ── client lifecycle ───────────────────────────────────────────────────


class TestClientLifecycle:
    def test_construction_fails_without_credentials(self) -> None:
        with pytest.raises(EmbeddingConfigurationError):
            EmbeddingClient(config=_settings())

    def test_sdk_handle_is_created_once(self, test_settings: Settings) -> None:
        client = EmbeddingClient(config=test_settings)
        with ThreadPoolExecutor(max_workers=8) as pool:
            handles = list(pool.map(lambda _: client.sdk, range(32)))
        assert isinstance(handles[0], openai.AsyncOpenAI)
        assert all(h is handles[0] for h in handles)

    @pytest.mark.asyncio
    async def test_aclose_releases_handle(self, client: EmbeddingClient) -> None:
        sdk = client.sdk
        await client.aclose()
        sdk.close.assert_awaited_once()

    def test_model_info(self, client: EmbeddingClient) -> None:
        info = client.model_info()
        assert info.model == "text-embedding-3-small"
        assert info.provider == "OpenAI"
        assert info.dimensions == 8
        assert info.max_batch_size == 100


# ── generate_embedding ─────────────────────────────────────────────────


class TestGenerateEmbedding:
    @pytest.mark.asyncio
    async def test_returns_vector(self, client: EmbeddingClient, fake_api) -> None:
        vector = await client.generate_embedding("  What is   VAT?  ")
        assert len(vector) == 8
        assert fake_api.calls == [
            {"model": "text-embedding-3-small", "input": "What is VAT?", "encoding_format": "float"}
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \n\t", "\x00\x01"])
    async def test_empty_input_never_calls_service(self, client: EmbeddingClient, fake_api, text: str) -> None:
        with pytest.raises(EmbeddingInputError):
            await client.generate_embedding(text)
        assert fake_api.calls == []

    @pytest.mark.asyncio
    async def test_input_is_truncated(self, test_settings: Settings, fake_api, client: EmbeddingClient) -> None:
        await client.generate_embedding("x" * 40_000)
        assert len(fake_api.calls[0]["input"]) == test_settings.embedding_max_chars

    @pytest.mark.asyncio
    async def test_retries_rate_limits_with_backoff(
        self, client: EmbeddingClient, fake_api, sleeps: list[float], status_error
    ) -> None:
        fake_api.outcomes = [status_error(429), status_error(429)]
        vector = await client.generate_embedding("hello")
        assert len(vector) == 8
        assert len(fake_api.calls) == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self, client: EmbeddingClient, fake_api, sleeps: list[float], status_error
    ) -> None:
        fake_api.outcomes = [status_error(429, "Rate limit exceeded")] * 3
        with pytest.raises(EmbeddingRetriesExhaustedError) as excinfo:
            await client.generate_embedding("hello")
        assert excinfo.value.attempts == 3
        assert "Rate limit exceeded" in str(excinfo.value)
        assert len(fake_api.calls) == 3
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(
        self, client: EmbeddingClient, fake_api, sleeps: list[float], status_error
    ) -> None:
        fake_api.outcomes = [status_error(500)]
        with pytest.raises(EmbeddingRemoteError) as excinfo:
            await client.generate_embedding("hello")
        assert excinfo.value.status_code == 500
        assert len(fake_api.calls) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_wrong_dimensions_rejected(self, client: EmbeddingClient, fake_api) -> None:
        fake_api.dimensions = 4
        with pytest.raises(EmbeddingRemoteError, match="dimensions"):
            await client.generate_embedding("hello")


# ── generate_batch_embeddings ──────────────────────────────────────────


TEXTS = ["a", "bb", "ccc", "dddd", "eeeee"]


def _indices(result: BatchEmbeddingResult) -> set[int]:
    return {r.index for r in result.results}


class TestGenerateBatchEmbeddings:
    @pytest.mark.asyncio
    async def test_empty_input(self, client: EmbeddingClient, fake_api) -> None:
        result = await client.generate_batch_embeddings([])
        assert result.results == []
        assert result.total_tokens == 0
        assert result.failed_indices == []
        assert fake_api.calls == []

    @pytest.mark.asyncio
    async def test_sub_batches_and_index_mapping(self, client: EmbeddingClient, fake_api) -> None:
        result = await client.generate_batch_embeddings(TEXTS, batch_size=2)
        assert len(fake_api.calls) == 3
        assert [c["input"] for c in fake_api.calls] == [["a", "bb"], ["ccc", "dddd"], ["eeeee"]]
        assert _indices(result) == set(range(5))
        assert result.failed_indices == []
        for r in result.results:
            # Fake vectors start with len(text), and come back reversed.
            assert r.text == TEXTS[r.index]
            assert r.embedding[0] == float(len(TEXTS[r.index]))
            assert len(r.embedding) == 8
        assert result.total_tokens == 50

    @pytest.mark.asyncio
    async def test_empty_texts_fail_without_being_sent(self, client: EmbeddingClient, fake_api) -> None:
        result = await client.generate_batch_embeddings(["alpha", "   ", "beta"])
        assert fake_api.calls[0]["input"] == ["alpha", "beta"]
        assert result.failed_indices == [1]
        assert _indices(result) == {0, 2}
        assert result.embedding_for(2)[0] == 4.0
        assert result.embedding_for(1) is None

    @pytest.mark.asyncio
    async def test_every_sub_batch_failing(self, client: EmbeddingClient, fake_api, status_error) -> None:
        fake_api.outcomes = [status_error(500)] * 3
        result = await client.generate_batch_embeddings(TEXTS, batch_size=2)
        assert result.results == []
        assert result.failed_indices == [0, 1, 2, 3, 4]
        assert len(result.failures) == 3

    @pytest.mark.asyncio
    async def test_failure_is_isolated_to_its_sub_batch(
        self, client: EmbeddingClient, fake_api, status_error
    ) -> None:
        fake_api.outcomes = [None, status_error(400, "Bad request")]
        result = await client.generate_batch_embeddings(TEXTS, batch_size=2)
        assert len(fake_api.calls) == 3
        assert result.failed_indices == [2, 3]
        assert _indices(result) == {0, 1, 4}
        assert "Bad request" in result.failures[0].reason

    @pytest.mark.asyncio
    async def test_rate_limited_sub_batch_is_retried(
        self, client: EmbeddingClient, fake_api, sleeps: list[float], status_error
    ) -> None:
        fake_api.outcomes = [status_error(429)]
        result = await client.generate_batch_embeddings(TEXTS)
        assert len(fake_api.calls) == 2
        assert sleeps == [1.0]
        assert _indices(result) == set(range(5))

    @pytest.mark.asyncio
    async def test_exhausted_retries_mark_sub_batch_failed(
        self, client: EmbeddingClient, fake_api, status_error
    ) -> None:
        fake_api.outcomes = [status_error(429)] * 3
        result = await client.generate_batch_embeddings(TEXTS, batch_size=3)
        assert result.failed_indices == [0, 1, 2]
        assert _indices(result) == {3, 4}

    @pytest.mark.asyncio
    async def test_missing_items_in_response_are_failed(
        self, client: EmbeddingClient, fake_api, response_factory
    ) -> None:
        fake_api.outcomes = [
            response_factory([(1, [1.0] * 8), (0, [2.0] * 4)], total_tokens=7),
        ]
        result = await client.generate_batch_embeddings(["one", "two", "three"])
        assert _indices(result) == {1}
        assert result.failed_indices == [0, 2]
        assert result.total_tokens == 7

    @pytest.mark.asyncio
    async def test_every_index_accounted_for_once(
        self, client: EmbeddingClient, fake_api, status_error
    ) -> None:
        texts = [f"text {i}" if i % 7 else "" for i in range(25)]
        fake_api.outcomes = [None, status_error(503), None]
        result = await client.generate_batch_embeddings(texts, batch_size=10)
        succeeded = [r.index for r in result.results]
        assert len(succeeded) == len(set(succeeded))
        assert not set(succeeded) & set(result.failed_indices)
        assert set(succeeded) | set(result.failed_indices) == set(range(25))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size", [0, -1])
    async def test_invalid_batch_size(self, client: EmbeddingClient, fake_api, batch_size: int) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            await client.generate_batch_embeddings(["a"], batch_size=batch_size)
        assert fake_api.calls == []

    @pytest.mark.asyncio
    async def test_programming_errors_propagate(self, client: EmbeddingClient, fake_api) -> None:
        fake_api.outcomes = [TypeError("unexpected keyword argument")]
        with pytest.raises(TypeError):
            await client.generate_batch_embeddings(TEXTS)

    @pytest.mark.asyncio
    async def test_malformed_response_propagates(self, client: EmbeddingClient, fake_api) -> None:
        fake_api.outcomes = [object()]
        with pytest.raises(AttributeError):
            await client.generate_batch_embeddings(TEXTS)
