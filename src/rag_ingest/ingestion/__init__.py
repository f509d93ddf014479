"""
Ingestion — turn raw documents into bounded, content-addressed segments.

Public surface
--------------
- :func:`chunk_document`, :func:`chunk_markdown`, :func:`chunk_qa_pairs` — strategies.
- :func:`segment_document` — picks a strategy from the detected content type.
- :func:`merge_small_chunks` — folds undersized segments into their neighbours.
- :class:`Segment`, :class:`ChunkOptions`, :class:`ContentType` — data models.
"""

from rag_ingest.ingestion.chunker import (
    CHUNK_CONFIG,
    chunk_document,
    chunk_markdown,
    chunk_qa_pairs,
    merge_small_chunks,
    segment_document,
)
from rag_ingest.ingestion.detection import detect_low_resource_language, get_optimal_config
from rag_ingest.ingestion.models import ChunkOptions, ContentType, Segment, Span

__all__ = [
    "CHUNK_CONFIG",
    "ChunkOptions",
    "ContentType",
    "Segment",
    "Span",
    "chunk_document",
    "chunk_markdown",
    "chunk_qa_pairs",
    "detect_low_resource_language",
    "get_optimal_config",
    "merge_small_chunks",
    "segment_document",
]
