"""Content-type heuristics used to pick chunking defaults.

These are advisory only; an explicit ``content_type`` always wins.
"""

from __future__ import annotations

import re

from rag_ingest.ingestion.models import ContentType

# Common Kinyarwanda function words and place names.
_LOW_RESOURCE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bni\b",
        r"\bku\b",
        r"\bmu\b",
        r"\bcya\b",
        r"\bbya\b",
        r"\bubu\b",
        r"\bumu\b",
        r"\baba\b",
        r"\biri\b",
        r"\bnta\b",
        r"rwanda",
        r"kigali",
    )
)
LOW_RESOURCE_MATCH_THRESHOLD = 3

_CODE_FENCE = "```"
_HEADING_RE = re.compile(r"^#{1,6}\s", re.MULTILINE)
_QA_MARKER_RE = re.compile(r"\b(?:Q|Question|FAQ):", re.IGNORECASE)


def detect_low_resource_language(text: str) -> bool:
    """Return ``True`` when *text* looks like Kinyarwanda.

    Counts how many distinct patterns occur at least once; three or more
    is treated as a positive signal.
    """
    matches = sum(1 for pattern in _LOW_RESOURCE_PATTERNS if pattern.search(text))
    return matches >= LOW_RESOURCE_MATCH_THRESHOLD


def has_markdown_structure(text: str) -> bool:
    return _CODE_FENCE in text or _HEADING_RE.search(text) is not None


def has_qa_markers(text: str) -> bool:
    return _QA_MARKER_RE.search(text) is not None


def get_optimal_config(text: str, explicit: ContentType | None = None) -> ContentType:
    """Pick the content profile for *text*.

    Parameters
    ----------
    text:
        Document text to inspect.
    explicit:
        Caller override; returned unchanged when given.

    Returns
    -------
    ContentType
        ``TECHNICAL`` for code fences or headings, ``QA`` for Q&A markers,
        ``LOW_RESOURCE_LANGUAGE`` when the language heuristic fires,
        ``PROSE`` otherwise.
    """
    if explicit is not None:
        return explicit
    if has_markdown_structure(text):
        return ContentType.TECHNICAL
    if has_qa_markers(text):
        return ContentType.QA
    if detect_low_resource_language(text):
        return ContentType.LOW_RESOURCE_LANGUAGE
    return ContentType.PROSE
