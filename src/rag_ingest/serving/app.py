"""FastAPI application exposing the ingestion core as a REST API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from rag_ingest import __version__
from rag_ingest.config import settings
from rag_ingest.embeddings.client import EmbeddingClient
from rag_ingest.embeddings.errors import (
    EmbeddingConfigurationError,
    EmbeddingError,
    EmbeddingInputError,
)
from rag_ingest.embeddings.models import BatchEmbeddingResult, EmbeddingModelInfo
from rag_ingest.ingestion.chunker import merge_small_chunks, segment_document
from rag_ingest.ingestion.models import ChunkOptions, Segment
from rag_ingest.pipeline import IngestionResult, ingest_document

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_embedding_client() -> EmbeddingClient:
    """Process-wide embedding client, created on first request."""
    return EmbeddingClient()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging on startup and release the embedding client on shutdown."""
    logging.basicConfig(level=settings.log_level)
    yield
    if get_embedding_client.cache_info().currsize:
        await get_embedding_client().aclose()
        get_embedding_client.cache_clear()


app = FastAPI(
    title="rag-ingest API",
    version=__version__,
    description="Segment documents and embed text for retrieval pipelines.",
    lifespan=lifespan,
)


# ── Request / Response schemas ────────────────────────────────────────
class SegmentRequest(BaseModel):
    """Document to segment."""

    text: str
    options: ChunkOptions = Field(default_factory=ChunkOptions)
    min_tokens: int | None = Field(default=None, ge=0)


class SegmentResponse(BaseModel):
    segments: list[Segment]


class EmbedRequest(BaseModel):
    """Texts to embed in one batch call."""

    texts: list[str]
    batch_size: int | None = Field(default=None, gt=0)


class IngestRequest(SegmentRequest):
    """Document to segment and embed."""


# ── Error mapping ─────────────────────────────────────────────────────
@app.exception_handler(EmbeddingError)
async def embedding_error_handler(request: Request, exc: EmbeddingError) -> JSONResponse:
    if isinstance(exc, EmbeddingInputError):
        status = 422
    elif isinstance(exc, EmbeddingConfigurationError):
        status = 503
    else:
        status = 502
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/model", response_model=EmbeddingModelInfo)
async def model(client: EmbeddingClient = Depends(get_embedding_client)) -> EmbeddingModelInfo:
    """Describe the active embedding model."""
    return client.model_info()


@app.post("/segment", response_model=SegmentResponse)
async def segment(request: SegmentRequest) -> SegmentResponse:
    """Split a document into segments without embedding them."""
    try:
        segments = segment_document(request.text, request.options)
        if request.min_tokens is not None:
            segments = merge_small_chunks(segments, request.min_tokens)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return SegmentResponse(segments=segments)


@app.post("/embed", response_model=BatchEmbeddingResult)
async def embed(
    request: EmbedRequest,
    client: EmbeddingClient = Depends(get_embedding_client),
) -> BatchEmbeddingResult:
    """Embed a list of texts; failures are reported per index."""
    return await client.generate_batch_embeddings(request.texts, batch_size=request.batch_size)


@app.post("/ingest", response_model=IngestionResult)
async def ingest(
    request: IngestRequest,
    client: EmbeddingClient = Depends(get_embedding_client),
) -> IngestionResult:
    """Segment a document and embed every segment."""
    try:
        return await ingest_document(
            request.text,
            client,
            request.options,
            min_tokens=request.min_tokens,
        )
    except ValueError as exc:
        if isinstance(exc, EmbeddingError):
            raise
        raise HTTPException(status_code=422, detail=str(exc)) from exc
