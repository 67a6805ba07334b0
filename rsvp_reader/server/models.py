"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: Request bodies and responses each get a model. Enums mirror the
core's format tags and fixation modes so invalid values are rejected
with a 422 before they reach the engine.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Enum values match the core enums exactly (SourceFormat, OrpMode)
- Response models never expose engine internals (timers, locks)
- words_per_minute in requests is not range-checked here; the engine clamps
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from rsvp_reader.core.ir import Paragraph, ReaderSnapshot


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SourceFormatName(str, Enum):
    """Normalization ruleset for submitted text."""

    plain = "plain"
    markdown = "markdown"
    pdf_extracted = "pdf-extracted"


class OrpModeName(str, Enum):
    """Fixation letter mode."""

    spritz = "spritz"
    center = "center"
    first_vowel = "firstVowel"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateSessionRequest(BaseModel):
    """Raw text to load into a new reading session."""

    text: str = Field(description="Raw text, already extracted from its medium.")
    source_format: SourceFormatName = Field(
        default=SourceFormatName.plain,
        description="Normalization ruleset to apply.",
    )
    words_per_minute: Optional[int] = Field(
        default=None,
        description="Initial reading speed (clamped to 100-1000).",
    )
    orp_mode: Optional[OrpModeName] = Field(
        default=None,
        description="Fixation letter mode.",
    )


class SeekRequest(BaseModel):
    """Jump to a word or a paragraph. Exactly one field must be set."""

    word_index: Optional[int] = Field(default=None, description="Word index (clamped).")
    paragraph_id: Optional[int] = Field(
        default=None,
        description="Paragraph id; jumping to a paragraph pauses playback.",
    )


class SpeedRequest(BaseModel):
    words_per_minute: int = Field(description="New reading speed (clamped to 100-1000).")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class WordSplitModel(BaseModel):
    prefix: str = Field(description="Characters before the fixation letter.")
    fixation: str = Field(description="The highlighted fixation letter.")
    suffix: str = Field(description="Characters after the fixation letter.")


class ParagraphModel(BaseModel):
    """One paragraph with its words, enough to lay out a full-text browser.

    RULES:
    - words[i] is document word word_range[0] + i; seek to that index to jump
    """

    id: int = Field(description="Sequential paragraph id.")
    preview: str = Field(description="First 50 characters of the paragraph.")
    word_range: List[int] = Field(description="Half-open [start, end) word range.")
    text: str = Field(description="Full normalized paragraph text.")
    words: List[str] = Field(description="The paragraph's words in reading order.")

    @classmethod
    def from_paragraph(cls, paragraph: Paragraph, words: Sequence[str]) -> "ParagraphModel":
        return cls(
            id=paragraph.id,
            preview=paragraph.preview,
            word_range=[paragraph.start, paragraph.end],
            text=paragraph.text,
            words=list(words),
        )


class SnapshotResponse(BaseModel):
    """Current state of a reading session.

    RULES:
    - paragraphs is omitted here; use GET /sessions/{id}/paragraphs
    """

    session_id: str = Field(description="Reading session identifier.")
    filename: str = Field(description="Name of the loaded source.")
    word: str = Field(description="The word currently shown.")
    split: WordSplitModel = Field(description="The current word split around its fixation letter.")
    current_index: int = Field(description="Index of the current word.")
    word_count: int = Field(description="Number of words in the document.")
    progress: float = Field(description="Reading progress between 0 and 1.")
    is_playing: bool = Field(description="Whether the session is advancing on a timer.")
    words_per_minute: int = Field(description="Current reading speed.")
    current_paragraph_index: int = Field(description="Index of the paragraph containing the current word.")
    paragraph_count: int = Field(description="Number of paragraphs in the document.")
    orp_mode: str = Field(description="Fixation letter mode.")

    @classmethod
    def from_snapshot(
        cls,
        session_id: str,
        filename: str,
        snapshot: ReaderSnapshot,
    ) -> "SnapshotResponse":
        return cls(
            session_id=session_id,
            filename=filename,
            word=snapshot.word,
            split=WordSplitModel(
                prefix=snapshot.split.prefix,
                fixation=snapshot.split.fixation,
                suffix=snapshot.split.suffix,
            ),
            current_index=snapshot.current_index,
            word_count=snapshot.word_count,
            progress=snapshot.progress,
            is_playing=snapshot.is_playing,
            words_per_minute=snapshot.words_per_minute,
            current_paragraph_index=snapshot.current_paragraph_index,
            paragraph_count=len(snapshot.paragraphs),
            orp_mode=snapshot.orp_mode,
        )


class ParagraphListResponse(BaseModel):
    session_id: str = Field(description="Reading session identifier.")
    paragraphs: List[ParagraphModel] = Field(description="Paragraphs in reading order.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    sessions: int = Field(description="Number of open reading sessions.")
