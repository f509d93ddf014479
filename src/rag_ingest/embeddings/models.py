"""Result models returned by the embedding client."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EmbeddingResult(BaseModel):
    """One embedded text.

    Attributes
    ----------
    text:
        The normalised text that was sent to the service.
    embedding:
        Vector of the configured dimensionality.
    token_count:
        Heuristic token estimate for *text*.
    index:
        Position of the source text in the caller's input list.
    """

    text: str
    embedding: list[float]
    token_count: int = Field(ge=0)
    index: int = Field(ge=0)


class BatchFailure(BaseModel):
    """A group of inputs that failed together, with the reason."""

    indices: list[int]
    reason: str


class BatchEmbeddingResult(BaseModel):
    """Outcome of a batch call.

    Every input index appears exactly once: either as the ``index`` of an
    entry in :attr:`results` or in :attr:`failed_indices`.
    """

    results: list[EmbeddingResult] = Field(default_factory=list)
    total_tokens: int = 0
    failed_indices: list[int] = Field(default_factory=list)
    failures: list[BatchFailure] = Field(default_factory=list)

    def embedding_for(self, index: int) -> list[float] | None:
        """Return the vector for input *index*, or ``None`` if it failed."""
        for result in self.results:
            if result.index == index:
                return result.embedding
        return None


class EmbeddingModelInfo(BaseModel):
    """Static description of the active embedding model."""

    model: str
    provider: str
    dimensions: int
    max_batch_size: int
    cost_per_1m_tokens: float = 0.02  # USD
