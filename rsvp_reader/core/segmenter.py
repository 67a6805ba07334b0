"""Split canonical text into paragraphs and a flat word sequence.

WHY: Playback walks a flat word list, but navigation (paragraph list,
next/previous paragraph, full-text browser) needs to know which words
belong to which paragraph. The segmenter produces both in one pass.

HOW: Split the text into lines, trim each, drop blanks. Each remaining
line is a paragraph candidate; whitespace splitting yields its words.
Words are appended to one cumulative list and each kept paragraph
records the half-open index range its words occupy.

RULES:
- A "paragraph" is any non-blank line of normalized text
- Candidates that yield zero words are dropped and consume no id
- Paragraph ids are sequential from 0 over kept paragraphs
- Ranges are contiguous, strictly increasing, and cover [0, word_count)
- Preview is the first PREVIEW_LENGTH characters plus "..." when longer
- Output depends only on the input string (fully deterministic)
"""

from __future__ import annotations

from typing import List

from rsvp_reader.config import PREVIEW_LENGTH
from rsvp_reader.core.ir import Document, Paragraph


def make_preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Return ``text`` trimmed, cut to ``length`` characters with "..." if truncated."""
    trimmed = text.strip()
    if len(trimmed) > length:
        return trimmed[:length] + "..."
    return trimmed


def segment(text: str) -> Document:
    """Build a Document from canonical text.

    Args:
        text: Normalized text; one paragraph per non-blank line.

    Returns:
        Document with ordered paragraphs and the flat word tuple. Empty
        input yields an empty Document (the normalizer rejects blank text
        before this point in the normal load path).
    """
    words: List[str] = []
    paragraphs: List[Paragraph] = []

    for line in text.splitlines():
        candidate = line.strip()
        if not candidate:
            continue

        line_words = candidate.split()
        if not line_words:
            continue

        start = len(words)
        words.extend(line_words)
        paragraphs.append(Paragraph(
            id=len(paragraphs),
            text=candidate,
            preview=make_preview(candidate),
            start=start,
            end=len(words),
        ))

    return Document(paragraphs=tuple(paragraphs), words=tuple(words))
