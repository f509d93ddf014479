"""Text normalisation and token estimation for embedding requests."""

from __future__ import annotations

import logging
import math
import re
import unicodedata

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 30_000

# Morphologically dense languages average fewer characters per token.
DENSE_LANGUAGES = frozenset({"rw", "kinyarwanda", "low-resource-language"})
CHARS_PER_TOKEN = 4
DENSE_CHARS_PER_TOKEN = 3

_WHITESPACE_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def clean_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Normalise *text* for embedding.

    NFKC-normalises, collapses whitespace runs to a single space, strips
    control characters and truncates to *max_chars*.
    """
    if not text:
        return ""

    cleaned = unicodedata.normalize("NFKC", text)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    cleaned = _CONTROL_RE.sub("", cleaned).strip()

    if len(cleaned) > max_chars:
        logger.debug("Text truncated for embedding: %d -> %d chars", len(cleaned), max_chars)
        cleaned = cleaned[:max_chars]
    return cleaned


def estimate_token_count(text: str, language: str = "en") -> int:
    """Cheap token estimate; not for correctness-critical decisions."""
    if not text:
        return 0
    divisor = DENSE_CHARS_PER_TOKEN if language.lower() in DENSE_LANGUAGES else CHARS_PER_TOKEN
    return math.ceil(len(text) / divisor)
