"""End-to-end ingestion: segment a document, then embed its segments.

Steps:

1. **Segment** — :func:`~rag_ingest.ingestion.chunker.segment_document`
   picks the chunking strategy from the content type.
2. **Merge** (optional) — fold segments below ``min_tokens`` into their
   neighbours.
3. **Embed** — one batch call; failures are reported per segment index
   instead of aborting the document.

Persisting the pairs is left to the caller.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from rag_ingest.embeddings.client import EmbeddingClient
from rag_ingest.ingestion.chunker import merge_small_chunks, segment_document
from rag_ingest.ingestion.models import ChunkOptions, Segment

logger = logging.getLogger(__name__)


class EmbeddedSegment(BaseModel):
    """A segment together with its vector."""

    segment: Segment
    embedding: list[float]


class IngestionResult(BaseModel):
    """Outcome of :func:`ingest_document`.

    Attributes
    ----------
    segments:
        Every segment produced for the document, in order.
    embedded:
        Segments that were embedded successfully, in segment order.
    failed_segment_indices:
        Indices into :attr:`segments` that could not be embedded.
    total_tokens:
        Tokens reported by the embedding service.
    """

    segments: list[Segment] = Field(default_factory=list)
    embedded: list[EmbeddedSegment] = Field(default_factory=list)
    failed_segment_indices: list[int] = Field(default_factory=list)
    total_tokens: int = 0


async def ingest_document(
    text: str,
    client: EmbeddingClient,
    options: ChunkOptions | None = None,
    *,
    min_tokens: int | None = None,
) -> IngestionResult:
    """Segment *text* and embed every segment.

    Parameters
    ----------
    text:
        Raw document text.
    client:
        Embedding client to use.
    options:
        Chunking options; content type is detected when not set.
    min_tokens:
        When given, undersized segments are merged before embedding.
    """
    segments = segment_document(text, options)
    if min_tokens is not None:
        segments = merge_small_chunks(segments, min_tokens)

    if not segments:
        return IngestionResult()

    batch = await client.generate_batch_embeddings([s.content for s in segments])
    vectors = {r.index: r.embedding for r in batch.results}

    embedded = [
        EmbeddedSegment(segment=segment, embedding=vectors[segment.index])
        for segment in segments
        if segment.index in vectors
    ]

    logger.info(
        "Ingested document: %d segments, %d embedded, %d failed",
        len(segments),
        len(embedded),
        len(batch.failed_indices),
    )
    return IngestionResult(
        segments=segments,
        embedded=embedded,
        failed_segment_indices=batch.failed_indices,
        total_tokens=batch.total_tokens,
    )
