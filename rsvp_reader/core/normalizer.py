"""Text normalization per source format: plain, markdown, and PDF-extracted.

WHY: Raw ingested text carries artifacts that break one-word-at-a-time
reading. Markdown has syntax markers that are not words; PDF extraction
wraps lines mid-paragraph, hyphenates words across line breaks, and
scatters spaces around punctuation. The segmenter needs canonical text
where one line is one paragraph and whitespace is meaningful.

HOW: Each cleanup step is a pure, module-level ``str -> str`` rule.
MARKDOWN_RULES and PDF_RULES list the rules in the order they run;
normalize() picks the list for the format tag, folds the text through
it, trims the result, and rejects blank output.

RULES:
- Rule order is part of the contract; later rules assume earlier ones ran
- Markdown: headings, emphasis, links, fenced code, inline code, bullets,
  horizontal rules (in that order)
- Fenced code removal must run before inline-code unwrapping
- PDF: ten passes, from space collapsing to the final whole-text trim
- Plain text passes through unchanged apart from the final trim
- Blank output after trimming raises EmptyContent
"""

from __future__ import annotations

import enum
import re
from typing import Callable, Dict, List, Union

Rule = Callable[[str], str]


class EmptyContent(ValueError):
    """Raised when normalized text is blank after all transforms and trimming.

    WHY: Loading a blank document must fail loudly and leave the current
    reading session untouched.
    """

    def __init__(self, message: str = "The text appears to be empty.") -> None:
        super().__init__(message)


class SourceFormat(str, enum.Enum):
    """Format tag selecting the normalization ruleset.

    HOW: Inherits from str so tags serialize cleanly and compare equal to
    their plain-string values.
    """

    PLAIN = "plain"
    MARKDOWN = "markdown"
    PDF_EXTRACTED = "pdf-extracted"

    @classmethod
    def parse(cls, value: Union[str, "SourceFormat"]) -> "SourceFormat":
        """Accept an enum member or its tag string (``pdf`` is an alias).

        Raises:
            ValueError: If the tag is not a known format.
        """
        if isinstance(value, cls):
            return value
        tag = str(value).strip().lower().replace("_", "-")
        if tag in ("pdf", "pdf-extracted"):
            return cls.PDF_EXTRACTED
        if tag in ("md", "markdown"):
            return cls.MARKDOWN
        if tag in ("txt", "text", "plain"):
            return cls.PLAIN
        raise ValueError(
            "Unknown source format '{}'. Expected one of: {}".format(
                value, ", ".join(f.value for f in cls)
            )
        )


# ---------------------------------------------------------------------------
# Markdown rules
# ---------------------------------------------------------------------------

_HEADING_RE = re.compile(r"^#{1,6}[ \t]+", re.MULTILINE)
_BOLD_STAR_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_STAR_RE = re.compile(r"\*(.+?)\*")
_BOLD_UNDERSCORE_RE = re.compile(r"__(.+?)__")
_ITALIC_UNDERSCORE_RE = re.compile(r"_(.+?)_")
_LINK_RE = re.compile(r"\[(.+?)\]\(.+?\)")
_FENCED_CODE_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`(.+?)`")
_BULLET_RE = re.compile(r"^[ \t]*[-*+][ \t]+", re.MULTILINE)
_HORIZONTAL_RULE_RE = re.compile(r"^[-*_]{3,}[ \t]*$", re.MULTILINE)


def strip_headings(text: str) -> str:
    """Remove leading ``#`` heading markers, keeping the heading text."""
    return _HEADING_RE.sub("", text)


def strip_emphasis(text: str) -> str:
    """Remove bold/italic/underline markers, keeping the inner text.

    Double markers go first so ``**bold**`` is not read as two italics.
    """
    text = _BOLD_STAR_RE.sub(r"\1", text)
    text = _ITALIC_STAR_RE.sub(r"\1", text)
    text = _BOLD_UNDERSCORE_RE.sub(r"\1", text)
    return _ITALIC_UNDERSCORE_RE.sub(r"\1", text)


def unwrap_links(text: str) -> str:
    """Replace ``[label](target)`` with its visible label."""
    return _LINK_RE.sub(r"\1", text)


def remove_fenced_code(text: str) -> str:
    """Delete fenced code blocks entirely, fences included."""
    return _FENCED_CODE_RE.sub("", text)


def unwrap_inline_code(text: str) -> str:
    """Remove inline code backticks, keeping the code text."""
    return _INLINE_CODE_RE.sub(r"\1", text)


def strip_bullets(text: str) -> str:
    """Remove leading ``-``, ``*`` or ``+`` list markers."""
    return _BULLET_RE.sub("", text)


def strip_horizontal_rules(text: str) -> str:
    """Blank out lines made only of 3+ ``-``, ``*`` or ``_`` characters."""
    return _HORIZONTAL_RULE_RE.sub("", text)


MARKDOWN_RULES: List[Rule] = [
    strip_headings,
    strip_emphasis,
    unwrap_links,
    remove_fenced_code,
    unwrap_inline_code,
    strip_bullets,
    strip_horizontal_rules,
]

# ---------------------------------------------------------------------------
# PDF-extracted rules
# ---------------------------------------------------------------------------

_MULTI_SPACE_RE = re.compile(r" {2,}")
_TABS_RE = re.compile(r"\t+")
_HYPHEN_WRAP_RE = re.compile(r"-\s*\n\s*")
_SINGLE_BREAK_RE = re.compile(r"(?<!\n)\n(?!\n)")
_EXCESS_BREAKS_RE = re.compile(r"\n{3,}")
_SPACE_BEFORE_BREAK_RE = re.compile(r" +\n")
_SPACE_AFTER_BREAK_RE = re.compile(r"\n +")
_SPACE_BEFORE_PUNCT_RE = re.compile(r" +([.,;:!?])")
_MISSING_SPACE_AFTER_PUNCT_RE = re.compile(r"([.,;:!?])([A-Za-z])")


def collapse_spaces_and_tabs(text: str) -> str:
    """Collapse runs of 2+ spaces, and runs of tabs, to a single space."""
    text = _MULTI_SPACE_RE.sub(" ", text)
    return _TABS_RE.sub(" ", text)


def join_hyphenated_wraps(text: str) -> str:
    """Join words split by a hyphen at a line break (``exam-\\nple`` → ``example``)."""
    return _HYPHEN_WRAP_RE.sub("", text)


def merge_single_line_breaks(text: str) -> str:
    """Turn paragraph-internal wraps into spaces; leave ``\\n\\n`` alone."""
    return _SINGLE_BREAK_RE.sub(" ", text)


def collapse_paragraph_breaks(text: str) -> str:
    """Reduce 3+ consecutive line breaks to exactly two."""
    return _EXCESS_BREAKS_RE.sub("\n\n", text)


def trim_spaces_around_breaks(text: str) -> str:
    text = _SPACE_BEFORE_BREAK_RE.sub("\n", text)
    return _SPACE_AFTER_BREAK_RE.sub("\n", text)


def collapse_spaces(text: str) -> str:
    return _MULTI_SPACE_RE.sub(" ", text)


def remove_space_before_punctuation(text: str) -> str:
    """``word ,`` → ``word,`` for ``. , ; : ! ?``."""
    return _SPACE_BEFORE_PUNCT_RE.sub(r"\1", text)


def ensure_space_after_punctuation(text: str) -> str:
    """``end.Next`` → ``end. Next`` when a letter directly follows punctuation."""
    return _MISSING_SPACE_AFTER_PUNCT_RE.sub(r"\1 \2", text)


def trim_lines(text: str) -> str:
    return "\n".join(line.strip() for line in text.split("\n"))


def trim_text(text: str) -> str:
    return text.strip()


PDF_RULES: List[Rule] = [
    collapse_spaces_and_tabs,
    join_hyphenated_wraps,
    merge_single_line_breaks,
    collapse_paragraph_breaks,
    trim_spaces_around_breaks,
    collapse_spaces,
    remove_space_before_punctuation,
    ensure_space_after_punctuation,
    trim_lines,
    trim_text,
]

RULESETS: Dict[SourceFormat, List[Rule]] = {
    SourceFormat.PLAIN: [],
    SourceFormat.MARKDOWN: MARKDOWN_RULES,
    SourceFormat.PDF_EXTRACTED: PDF_RULES,
}


def apply_rules(text: str, rules: List[Rule]) -> str:
    """Fold ``text`` through ``rules`` in order."""
    for rule in rules:
        text = rule(text)
    return text


def normalize(text: str, source_format: Union[str, SourceFormat] = SourceFormat.PLAIN) -> str:
    """Clean raw text into canonical text for segmentation.

    Args:
        text: Raw text, already extracted from its medium.
        source_format: Format tag selecting the ruleset.

    Returns:
        Canonical text, stripped of leading/trailing whitespace.

    Raises:
        EmptyContent: If nothing but whitespace remains.
        ValueError: If the format tag is unknown.
    """
    fmt = SourceFormat.parse(source_format)
    result = apply_rules(text, RULESETS[fmt]).strip()
    if not result:
        raise EmptyContent()
    return result
