"""Domain models for document segmentation."""

from __future__ import annotations

import hashlib
import math
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, model_validator

if TYPE_CHECKING:
    from langchain_core.documents import Document

CHARS_PER_TOKEN = 4


class ContentType(str, Enum):
    """Built-in content profiles, each with its own size/overlap defaults."""

    DEFAULT = "default"
    PROSE = "prose"
    TECHNICAL = "technical"
    QA = "qa"
    LOW_RESOURCE_LANGUAGE = "low-resource-language"


class ChunkOptions(BaseModel):
    """Caller-supplied chunking options.

    Any field left as ``None`` falls back to the defaults of
    :attr:`content_type` (see :data:`rag_ingest.ingestion.chunker.CHUNK_CONFIG`).

    Attributes
    ----------
    chunk_size:
        Target segment size in tokens.
    overlap:
        Tokens shared between consecutive segments.
    separator:
        Preferred split boundary, tried before the built-in ones.
    content_type:
        Profile selecting the defaults for the fields above.
    """

    chunk_size: int | None = Field(default=None, gt=0)
    overlap: int | None = Field(default=None, ge=0)
    separator: str | None = None
    content_type: ContentType = ContentType.DEFAULT


class Span(BaseModel):
    """Half-open character window ``[start_char, end_char)`` in the source document."""

    start_char: int = Field(ge=0)
    end_char: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> Span:
        if self.end_char < self.start_char:
            raise ValueError(f"end_char ({self.end_char}) must be >= start_char ({self.start_char})")
        return self


class Segment(BaseModel):
    """One bounded unit of document text.

    Attributes
    ----------
    content:
        Trimmed, non-empty text.
    index:
        Zero-based position within the parent document's segment list.
    token_count:
        Cheap estimate derived from ``len(content)``.
    content_hash:
        Deterministic digest of ``content`` used for deduplication.
    span:
        Raw character window of the source document this segment was cut from.
    section:
        Nearest enclosing heading title for markdown input.
    """

    content: str = Field(min_length=1)
    index: int = Field(ge=0)
    token_count: int = Field(ge=0)
    content_hash: str
    span: Span
    section: str | None = None

    @classmethod
    def create(
        cls,
        content: str,
        index: int,
        start_char: int,
        end_char: int,
        section: str | None = None,
    ) -> Segment:
        return cls(
            content=content,
            index=index,
            token_count=segment_token_count(content),
            content_hash=content_hash(content),
            span=Span(start_char=start_char, end_char=end_char),
            section=section,
        )

    def to_document(self, **metadata: Any) -> Document:
        """Return a LangChain ``Document`` carrying the segment metadata.

        Imported lazily so the segmenter has no hard LangChain dependency
        at import time.
        """
        from langchain_core.documents import Document

        meta: dict[str, Any] = {
            "chunk_index": self.index,
            "token_count": self.token_count,
            "content_hash": self.content_hash,
            "start_char": self.span.start_char,
            "end_char": self.span.end_char,
        }
        if self.section is not None:
            meta["section"] = self.section
        meta.update(metadata)
        return Document(page_content=self.content, metadata=meta)


def content_hash(content: str) -> str:
    """First 16 hex characters of the SHA-256 digest of *content*."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


def segment_token_count(content: str) -> int:
    """Conservative token estimate, rounding up (≈4 chars/token)."""
    return math.ceil(len(content) / CHARS_PER_TOKEN)
