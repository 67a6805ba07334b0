"""Intermediate representation dataclasses for segmented documents and playback.

WHY: The normalizer and segmenter produce a document once; the playback
engine, the terminal player, and the HTTP API all read it many times.
A single, well-typed intermediate form decouples segmentation from
presentation and keeps the invariants in one place.

HOW: Five types form the model:
  Paragraph      — one kept line with its half-open range over the word tuple
  Document       — the ordered paragraphs plus the flat word tuple they partition
  PlaybackState  — the engine's one canonical mutable state object
  WordSplit      — (prefix, fixation, suffix) for the displayed word
  ReaderSnapshot — immutable read-only view handed to presentation layers

RULES:
- Words are plain strings held in a tuple; a word is identified by index
- Paragraph ranges are contiguous, strictly increasing, and cover [0, word_count)
- Paragraphs hold no text of the words; they only reference index ranges
- Document and Paragraph are frozen; only PlaybackEngine mutates PlaybackState
- ReaderSnapshot.to_dict() is JSON-ready (no tuples of dataclasses)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple


@dataclass(frozen=True)
class Paragraph:
    """One non-blank logical line of normalized text.

    RULES:
    - id: sequential from 0 over kept paragraphs only
    - text: the trimmed line
    - preview: first 50 characters, plus "..." when truncated
    - start / end: half-open word range [start, end) into Document.words
    """

    id: int
    text: str
    preview: str
    start: int
    end: int

    @property
    def word_range(self) -> range:
        return range(self.start, self.end)

    @property
    def word_count(self) -> int:
        return self.end - self.start

    def contains(self, index: int) -> bool:
        return self.start <= index < self.end

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "preview": self.preview,
            "word_range": [self.start, self.end],
        }


@dataclass(frozen=True)
class Document:
    """The ordered paragraphs and the flat word sequence they partition.

    WHY: Navigation is index arithmetic. Keeping words flat and paragraphs
    as range tuples avoids nested structures and back-pointers.

    RULES:
    - Replaced wholesale on load, emptied on close
    - An empty Document has no words and no paragraphs
    """

    paragraphs: tuple[Paragraph, ...] = ()
    words: tuple[str, ...] = ()

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def is_empty(self) -> bool:
        return not self.words

    def paragraph_words(self, paragraph: Paragraph) -> tuple[str, ...]:
        """Return the words of ``paragraph`` as a slice of the shared tuple."""
        return self.words[paragraph.start:paragraph.end]


@dataclass
class PlaybackState:
    """Mutable playback state owned by PlaybackEngine.

    RULES:
    - current_index: 0 <= current_index <= word_count - 1 when loaded, else 0
    - words_per_minute: always within [MIN_WPM, MAX_WPM]
    - progress: within [0, 1]; 0 when no document
    - current_paragraph_index: index into Document.paragraphs
    """

    current_index: int = 0
    is_playing: bool = False
    words_per_minute: int = 300
    progress: float = 0.0
    current_paragraph_index: int = 0


class WordSplit(NamedTuple):
    """A word split around its fixation letter."""

    prefix: str
    fixation: str
    suffix: str


@dataclass(frozen=True)
class ReaderSnapshot:
    """Read-only view of the engine for a presentation layer.

    WHY: The presentation layer (terminal, HTTP client, GUI) must never
    mutate engine state. A frozen snapshot taken after each operation
    replaces observable properties with a plain value.

    RULES:
    - word is "" and split is ("", "", "") when no document is loaded
    - paragraphs is the full ordered list, shared with the Document
    """

    word: str
    split: WordSplit
    current_index: int
    word_count: int
    progress: float
    is_playing: bool
    words_per_minute: int
    current_paragraph_index: int
    orp_mode: str
    paragraphs: tuple[Paragraph, ...] = field(default=(), repr=False)

    @property
    def has_content(self) -> bool:
        return self.word_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "split": {
                "prefix": self.split.prefix,
                "fixation": self.split.fixation,
                "suffix": self.split.suffix,
            },
            "current_index": self.current_index,
            "word_count": self.word_count,
            "progress": self.progress,
            "is_playing": self.is_playing,
            "words_per_minute": self.words_per_minute,
            "current_paragraph_index": self.current_paragraph_index,
            "orp_mode": self.orp_mode,
            "paragraphs": [p.to_dict() for p in self.paragraphs],
        }
