"""Configuration constants, supported source formats, and .env loading.

WHY: Reading speed, fixation mode, skip size, and speed step are caller
preferences that the core never persists. Centralizing their defaults
here keeps them easy to find and lets a deployment override them
without touching logic.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values read from environment variables with hard-coded
fallbacks. The file-extension table is plain data, not buried in the
loader.

RULES:
- WPM is always clamped to [MIN_WPM, MAX_WPM] by the engine
- Malformed integer env values fall back to the default (logged)
- SUPPORTED_EXTENSIONS maps lowercase extensions (with dot) to format tags
- Format tag strings match rsvp_reader.core.normalizer.SourceFormat values
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from the project root (where the app is run from)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


# ---------------------------------------------------------------------------
# Playback defaults
# ---------------------------------------------------------------------------

MIN_WPM = 100
MAX_WPM = 1000

DEFAULT_WPM = _env_int("RSVP_DEFAULT_WPM", 300)
DEFAULT_ORP_MODE = os.getenv("RSVP_ORP_MODE", "spritz")
DEFAULT_SKIP_WORDS = _env_int("RSVP_SKIP_WORDS", 10)
DEFAULT_SPEED_STEP = _env_int("RSVP_SPEED_STEP", 25)

PREVIEW_LENGTH = 50
"""Characters of paragraph text kept in the preview before the ellipsis."""

# ---------------------------------------------------------------------------
# Supported source files
# ---------------------------------------------------------------------------

SUPPORTED_EXTENSIONS: dict[str, str] = {
    ".txt": "plain",
    ".md": "markdown",
    ".markdown": "markdown",
    ".pdf": "pdf-extracted",
}
"""File extension (lowercase, with dot) → normalization format tag."""

# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------

SESSION_TTL_SECONDS = _env_int("RSVP_SESSION_TTL", 3600)
MAX_SESSIONS = _env_int("RSVP_MAX_SESSIONS", 100)


def clamp_wpm(value: int) -> int:
    """Clamp a words-per-minute value into [MIN_WPM, MAX_WPM]."""
    return max(MIN_WPM, min(MAX_WPM, int(value)))
