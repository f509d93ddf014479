"""Question/answer pair extraction.

Each matcher scans the whole text for one structural convention and
returns every non-empty pair it finds.  :data:`QA_MATCHERS` lists them in
priority order; callers use the first matcher that returns anything.
"""

from __future__ import annotations

import re
from typing import Callable, NamedTuple


class QAPair(NamedTuple):
    question: str
    answer: str
    start_char: int
    end_char: int

    def format(self) -> str:
        return f"Q: {self.question}\nA: {self.answer}"


QAMatcher = Callable[[str], "list[QAPair]"]

_MARKER_RE = re.compile(
    r"\b(?:Q|Question|FAQ):\s*(.*?)\n+\s*(?:A|Answer):\s*(.*?)(?=\b(?:Q|Question|FAQ):|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_BOLD_RE = re.compile(
    r"^\*\*([^\n]+?)\*\*[ \t]*\n+(.*?)(?=^\*\*|\Z)",
    re.MULTILINE | re.DOTALL,
)
_HEADING_RE = re.compile(
    r"^#{1,6}[ \t]+([^\n]+?)[ \t]*\n+(.*?)(?=^#{1,6}[ \t]|\Z)",
    re.MULTILINE | re.DOTALL,
)


def _collect(pattern: re.Pattern[str], text: str) -> list[QAPair]:
    pairs: list[QAPair] = []
    for match in pattern.finditer(text):
        question = match.group(1).strip()
        answer = match.group(2).strip()
        if question and answer:
            pairs.append(QAPair(question, answer, match.start(), match.end()))
    return pairs


def match_explicit_markers(text: str) -> list[QAPair]:
    """``Q:`` / ``Question:`` / ``FAQ:`` followed by ``A:`` / ``Answer:``."""
    return _collect(_MARKER_RE, text)


def match_bold_questions(text: str) -> list[QAPair]:
    """A ``**bold**`` question line followed by its answer."""
    return _collect(_BOLD_RE, text)


def match_heading_questions(text: str) -> list[QAPair]:
    """A markdown heading used as the question, its body as the answer."""
    return _collect(_HEADING_RE, text)


QA_MATCHERS: tuple[QAMatcher, ...] = (
    match_explicit_markers,
    match_bold_questions,
    match_heading_questions,
)


def extract_qa_pairs(text: str, matchers: tuple[QAMatcher, ...] = QA_MATCHERS) -> list[QAPair]:
    """Return the pairs of the first matcher that finds any, else ``[]``."""
    for matcher in matchers:
        pairs = matcher(text)
        if pairs:
            return pairs
    return []
