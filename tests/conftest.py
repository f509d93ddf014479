"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from rag_ingest.config import Settings
from rag_ingest.embeddings.client import EmbeddingClient
from rag_ingest.embeddings.retry import RateLimitRetry

TEST_DIMENSIONS = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake OpenAI SDK handle ──────────────────────────────────────────────


def make_status_error(status: int, message: str | None = None) -> openai.APIStatusError:
    """Build the SDK exception raised for an HTTP *status* response."""
    request = httpx.Request("POST", "https://api.test/v1/embeddings")
    response = httpx.Response(status, request=request)
    cls = openai.RateLimitError if status == 429 else openai.APIStatusError
    return cls(message or f"Error code: {status}", response=response, body=None)


def make_response(vectors: list[tuple[int, list[float]]], total_tokens: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        data=[SimpleNamespace(index=i, embedding=v) for i, v in vectors],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


class FakeEmbeddingsAPI:
    """Stand-in for ``AsyncOpenAI().embeddings``.

    Each call pops the next entry of *outcomes*: an exception is raised, a
    response object is returned as-is, and ``None`` (or an exhausted queue)
    produces a default response.  Default vectors start with
    ``len(text)`` so tests can check the index mapping, and are returned in
    reverse order to mimic out-of-order responses.
    """

    def __init__(self, dimensions: int = TEST_DIMENSIONS, outcomes: list[Any] | None = None) -> None:
        self.dimensions = dimensions
        self.outcomes = list(outcomes or [])
        self.calls: list[dict[str, Any]] = []

    async def create(self, *, model: str, input: str | list[str], encoding_format: str) -> Any:
        self.calls.append({"model": model, "input": input, "encoding_format": encoding_format})
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is not None:
            return outcome

        inputs = [input] if isinstance(input, str) else list(input)
        vectors = [
            (i, [float(len(text))] + [0.0] * (self.dimensions - 1)) for i, text in enumerate(inputs)
        ]
        vectors.reverse()
        return make_response(vectors, total_tokens=10 * len(inputs))


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        openrouter_api_key="",
        embedding_provider="openai",
        embedding_dimensions=TEST_DIMENSIONS,
        embedding_batch_size=100,
        embedding_max_retries=3,
        embedding_retry_base_delay=1.0,
    )


@pytest.fixture()
def status_error():
    return make_status_error


@pytest.fixture()
def response_factory():
    return make_response


@pytest.fixture()
def sleeps() -> list[float]:
    """Delays requested by the retry policy, in order."""
    return []


@pytest.fixture()
def fake_api() -> FakeEmbeddingsAPI:
    return FakeEmbeddingsAPI()


@pytest.fixture()
def client(test_settings: Settings, fake_api: FakeEmbeddingsAPI, sleeps: list[float]) -> EmbeddingClient:
    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    sdk = SimpleNamespace(embeddings=fake_api, close=AsyncMock())
    retry = RateLimitRetry(max_attempts=3, base_delay=1.0, sleep=record_sleep)
    return EmbeddingClient(config=test_settings, retry=retry, sdk_client=sdk)
