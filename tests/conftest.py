"""Shared test fixtures for the rsvp_reader test suite.

WHY: Engine, API, and CLI tests all need the same sample documents and
a playback engine that never touches a real clock. Centralizing them
here avoids duplication and keeps timing tests deterministic.

HOW: Pytest fixtures provide sample texts (plain, markdown, PDF-style),
a ManualScheduler, and engines built on it, both empty and loaded.

RULES:
- No fixture sleeps or starts a real timer thread
- SAMPLE_TEXT has 3 paragraphs and 12 words with known ranges
- WPM 240 gives an exact 0.25 s interval for float-safe clock math
"""

from typing import List

import pytest

from rsvp_reader.core.engine import PlaybackEngine
from rsvp_reader.core.ir import ReaderSnapshot
from rsvp_reader.core.scheduler import ManualScheduler


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

# Paragraph word ranges: [0, 4), [4, 9), [9, 12)
SAMPLE_TEXT = (
    "The quick brown fox\n"
    "\n"
    "jumps over the lazy dog.\n"
    "   \n"
    "Reading is fun"
)

SAMPLE_MARKDOWN = (
    "# Chapter One\n"
    "\n"
    "This is **bold** and *italic* text with a [link](https://example.com).\n"
    "\n"
    "```python\n"
    "print('hidden')\n"
    "```\n"
    "\n"
    "- first item with `code`\n"
    "- second item\n"
    "\n"
    "---\n"
    "\n"
    "The end."
)

SAMPLE_PDF_TEXT = (
    "The  quick\tbrown fox jumps over the lazy dog .It was a\n"
    "very exam-\n"
    "  ple sentence, wrapped across\n"
    "lines.\n"
    "\n"
    "\n"
    "\n"
    "Second paragraph !Done"
)


@pytest.fixture
def scheduler():
    """A simulated clock; advance() fires due ticks."""
    return ManualScheduler()


@pytest.fixture
def engine(scheduler):
    """An empty engine at 240 WPM on the manual scheduler."""
    return PlaybackEngine(scheduler, words_per_minute=240)


@pytest.fixture
def loaded_engine(engine):
    """An engine with SAMPLE_TEXT loaded (12 words, 3 paragraphs)."""
    engine.load(SAMPLE_TEXT, "plain")
    return engine


@pytest.fixture
def snapshots() -> List[ReaderSnapshot]:
    """A list an engine observer can append to."""
    return []


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_TEXT


@pytest.fixture
def sample_markdown() -> str:
    return SAMPLE_MARKDOWN


@pytest.fixture
def sample_pdf_text() -> str:
    return SAMPLE_PDF_TEXT
