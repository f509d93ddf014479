"""Text chunking strategies.

Three strategies share one :class:`~rag_ingest.ingestion.models.Segment`
output type:

* :func:`chunk_document` — recursive separator split with overlap.
* :func:`chunk_markdown` — one segment per heading section, oversized
  sections handed to :func:`chunk_document`.
* :func:`chunk_qa_pairs` — one segment per question/answer pair.

:func:`segment_document` picks one of them from the detected content type.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

from rag_ingest.ingestion.detection import get_optimal_config
from rag_ingest.ingestion.models import (
    CHARS_PER_TOKEN,
    ChunkOptions,
    ContentType,
    Segment,
    Span,
    content_hash,
)
from rag_ingest.ingestion.qa import extract_qa_pairs

logger = logging.getLogger(__name__)


class ChunkDefaults(NamedTuple):
    chunk_size: int
    overlap: int
    separator: str


CHUNK_CONFIG: dict[ContentType, ChunkDefaults] = {
    ContentType.DEFAULT: ChunkDefaults(chunk_size=512, overlap=50, separator="\n\n"),
    ContentType.PROSE: ChunkDefaults(chunk_size=768, overlap=100, separator="\n\n"),
    ContentType.TECHNICAL: ChunkDefaults(chunk_size=512, overlap=80, separator="\n"),
    ContentType.QA: ChunkDefaults(chunk_size=256, overlap=0, separator="\n---\n"),
    # Smaller windows for morphologically dense text.
    ContentType.LOW_RESOURCE_LANGUAGE: ChunkDefaults(chunk_size=384, overlap=60, separator="\n\n"),
}

FALLBACK_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ")

_HEADING_LINE_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*$", re.MULTILINE)
_FENCE_RE = re.compile(r"^[ \t]*(?:```|~~~)", re.MULTILINE)


class ResolvedOptions(NamedTuple):
    """Character-based sizes after content-type defaults are applied."""

    chunk_chars: int
    overlap_chars: int
    separators: tuple[str, ...]


def resolve_options(options: ChunkOptions | None = None) -> ResolvedOptions:
    """Merge *options* with its content-type defaults and convert to characters.

    A default overlap is capped below the resolved chunk size, so setting
    only ``chunk_size`` works for every content type.

    Raises
    ------
    ValueError
        If an explicit overlap is not smaller than the chunk size.
    """
    options = options or ChunkOptions()
    defaults = CHUNK_CONFIG[options.content_type]

    chunk_size = options.chunk_size if options.chunk_size is not None else defaults.chunk_size
    if options.overlap is not None:
        overlap = options.overlap
    else:
        overlap = min(defaults.overlap, chunk_size - 1)
    separator = options.separator or defaults.separator

    if overlap >= chunk_size:
        raise ValueError(f"overlap ({overlap}) must be < chunk_size ({chunk_size})")

    separators: list[str] = []
    for sep in (separator, *FALLBACK_SEPARATORS):
        if sep and sep not in separators:
            separators.append(sep)

    return ResolvedOptions(
        chunk_chars=chunk_size * CHARS_PER_TOKEN,
        overlap_chars=overlap * CHARS_PER_TOKEN,
        separators=tuple(separators),
    )


def split_by_separators(text: str, separators: tuple[str, ...], max_chars: int) -> list[str]:
    """Recursively split *text* until every piece fits *max_chars*.

    Pieces keep their trailing separator, so ``"".join(result) == text``.
    A piece is only split further with the next separator when it is still
    too large; pieces that no separator can break are returned whole.
    """
    if len(text) <= max_chars or not separators:
        return [text] if text else []

    sep, rest = separators[0], separators[1:]
    if sep not in text:
        return split_by_separators(text, rest, max_chars)

    parts = text.split(sep)
    fragments: list[str] = []
    for i, part in enumerate(parts):
        piece = part + sep if i < len(parts) - 1 else part
        fragments.extend(split_by_separators(piece, rest, max_chars))
    return fragments


def _emit(segments: list[Segment], window: str, start: int, end: int) -> None:
    content = window.strip()
    if content:
        segments.append(Segment.create(content, len(segments), start, end))


def chunk_document(text: str, options: ChunkOptions | None = None) -> list[Segment]:
    """Split *text* into overlapping segments.

    Parameters
    ----------
    text:
        Document text to chunk.
    options:
        Chunking options; unset fields use the content-type defaults.

    Returns
    -------
    list[Segment]
        Segments in document order.  Empty or whitespace-only input
        yields ``[]``.
    """
    resolved = resolve_options(options)
    if not text or not text.strip():
        return []

    fragments = split_by_separators(text, resolved.separators, resolved.chunk_chars)

    segments: list[Segment] = []
    current = ""
    current_start = 0
    position = 0

    for fragment in fragments:
        if current and len(current) + len(fragment) > resolved.chunk_chars:
            _emit(segments, current, current_start, position)

            # Overlap is only seeded when the closed window can supply all of it.
            if resolved.overlap_chars and len(current) > resolved.overlap_chars:
                current = current[-resolved.overlap_chars :] + fragment
                current_start = position - resolved.overlap_chars
            else:
                current = fragment
                current_start = position
        else:
            current += fragment
        position += len(fragment)

    _emit(segments, current, current_start, position)

    logger.debug(
        "Chunked %d chars into %d segments (chunk_chars=%d, overlap_chars=%d)",
        len(text),
        len(segments),
        resolved.chunk_chars,
        resolved.overlap_chars,
    )
    return segments


class _Section(NamedTuple):
    title: str | None
    level: int
    start: int
    end: int


def _fenced_ranges(text: str) -> list[tuple[int, int]]:
    ranges: list[tuple[int, int]] = []
    open_at: int | None = None
    for match in _FENCE_RE.finditer(text):
        if open_at is None:
            open_at = match.start()
        else:
            ranges.append((open_at, match.end()))
            open_at = None
    if open_at is not None:
        ranges.append((open_at, len(text)))
    return ranges


def _split_sections(markdown: str) -> list[_Section]:
    fenced = _fenced_ranges(markdown)
    headings = [
        m
        for m in _HEADING_LINE_RE.finditer(markdown)
        if not any(start <= m.start() < end for start, end in fenced)
    ]

    sections: list[_Section] = []
    first_start = headings[0].start() if headings else len(markdown)
    if first_start > 0:
        sections.append(_Section(title=None, level=0, start=0, end=first_start))

    for i, match in enumerate(headings):
        end = headings[i + 1].start() if i + 1 < len(headings) else len(markdown)
        sections.append(
            _Section(
                title=match.group(2).strip(),
                level=len(match.group(1)),
                start=match.start(),
                end=end,
            )
        )
    return sections


def chunk_markdown(markdown: str, options: ChunkOptions | None = None) -> list[Segment]:
    """Chunk *markdown* along its heading structure.

    Every segment carries the title of the heading it falls under
    (``None`` for text before the first heading).  Headings inside fenced
    code blocks are ignored.
    """
    resolved = resolve_options(options)
    segments: list[Segment] = []

    for section in _split_sections(markdown):
        raw = markdown[section.start : section.end]
        content = raw.strip()
        if not content:
            continue

        if len(content) <= resolved.chunk_chars:
            segments.append(
                Segment.create(content, len(segments), section.start, section.end, section=section.title)
            )
            continue

        for sub in chunk_document(raw, options):
            segments.append(
                sub.model_copy(
                    update={
                        "index": len(segments),
                        "section": section.title,
                        "span": Span(
                            start_char=sub.span.start_char + section.start,
                            end_char=sub.span.end_char + section.start,
                        ),
                    }
                )
            )

    return segments


def chunk_qa_pairs(text: str, options: ChunkOptions | None = None) -> list[Segment]:
    """Chunk Q&A text, keeping each question together with its answer.

    Falls back to :func:`chunk_document` with the ``qa`` profile when no
    pair pattern matches.
    """
    pairs = extract_qa_pairs(text)
    if not pairs:
        fallback = (options or ChunkOptions()).model_copy(update={"content_type": ContentType.QA})
        return chunk_document(text, fallback)

    return [
        Segment.create(pair.format(), i, pair.start_char, pair.end_char)
        for i, pair in enumerate(pairs)
    ]


def merge_small_chunks(segments: list[Segment], min_tokens: int = 100) -> list[Segment]:
    """Merge consecutive segments until each reaches *min_tokens*.

    Only the last returned segment may stay below the floor.  Output
    indices are reassigned from zero.
    """
    if min_tokens < 0:
        raise ValueError(f"min_tokens must be >= 0, got {min_tokens}")

    merged: list[Segment] = []
    current: Segment | None = None

    for segment in segments:
        if current is None:
            current = segment
            continue

        if current.token_count < min_tokens:
            joined = f"{current.content}\n\n{segment.content}"
            current = current.model_copy(
                update={
                    "content": joined,
                    "token_count": current.token_count + segment.token_count,
                    "content_hash": content_hash(joined),
                    "span": Span(
                        start_char=current.span.start_char,
                        end_char=max(current.span.end_char, segment.span.end_char),
                    ),
                }
            )
        else:
            merged.append(current)
            current = segment

    if current is not None:
        merged.append(current)

    return [segment.model_copy(update={"index": i}) for i, segment in enumerate(merged)]


def segment_document(text: str, options: ChunkOptions | None = None) -> list[Segment]:
    """Chunk *text* with the strategy matching its content type.

    An explicitly set ``content_type`` is honoured; otherwise it is detected
    with :func:`~rag_ingest.ingestion.detection.get_optimal_config`.
    Markdown with headings goes to :func:`chunk_markdown`, Q&A text to
    :func:`chunk_qa_pairs`, everything else to :func:`chunk_document`.
    """
    options = options or ChunkOptions()
    explicit = options.content_type if "content_type" in options.model_fields_set else None
    content_type = get_optimal_config(text, explicit)
    options = options.model_copy(update={"content_type": content_type})

    if content_type is ContentType.TECHNICAL and _HEADING_LINE_RE.search(text):
        return chunk_markdown(text, options)
    if content_type is ContentType.QA:
        return chunk_qa_pairs(text, options)
    return chunk_document(text, options)
