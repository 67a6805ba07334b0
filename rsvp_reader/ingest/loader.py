"""Load reading material from .txt, .md, and .pdf files.

WHY: The core engine only accepts text plus a format tag. Something has
to map a file (or an uploaded file's bytes) to that pair: pick the
format from the extension, decode text files, and pull the text layer
out of PDFs.

HOW: format_for_path() looks the extension up in SUPPORTED_EXTENSIONS.
load_source() reads a path; load_bytes() does the same for in-memory
uploads. PDFs go through pypdf's PdfReader page by page, joined with
blank lines so page breaks become paragraph breaks. Nothing here
normalizes; the engine does that on load.

RULES:
- Extensions are matched case-insensitively
- Text files must be UTF-8 (a BOM is tolerated)
- Unsupported extension → UnsupportedFormat
- Undecodable or unreadable file → UnreadableFile
- PDF with no extractable text → PdfExtractionFailed
- Blank raw text → EmptyContent (same error the engine raises)
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Union

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from rsvp_reader.config import SUPPORTED_EXTENSIONS
from rsvp_reader.core.normalizer import EmptyContent, SourceFormat

logger = logging.getLogger(__name__)


class LoaderError(Exception):
    """Base class for file ingestion failures."""


class UnsupportedFormat(LoaderError):
    def __init__(self, filename: str) -> None:
        self.filename = filename
        supported = ", ".join(sorted(SUPPORTED_EXTENSIONS))
        super().__init__(
            "Unsupported file format '{}'. Please use one of: {}".format(
                Path(filename).suffix or filename, supported
            )
        )


class UnreadableFile(LoaderError):
    pass


class PdfExtractionFailed(LoaderError):
    pass


@dataclass
class LoadedSource:
    """Raw text ready for PlaybackEngine.load().

    RULES:
    - text: raw, not yet normalized
    - source_format: the normalization ruleset for this file
    - filename: base name of the source (for display)
    """

    text: str
    source_format: SourceFormat
    filename: str


def format_for_path(path: Union[str, Path]) -> SourceFormat:
    """Return the normalization format for a file name.

    Raises:
        UnsupportedFormat: If the extension is not supported.
    """
    name = Path(path).name
    tag = SUPPORTED_EXTENSIONS.get(Path(name).suffix.lower())
    if tag is None:
        raise UnsupportedFormat(name)
    return SourceFormat(tag)


def extract_pdf_text(stream: Union[str, Path, BinaryIO]) -> str:
    """Extract the text layer of every page, joined by blank lines.

    Raises:
        UnreadableFile: If pypdf cannot parse the document.
        PdfExtractionFailed: If no page yields any text.
    """
    try:
        reader = PdfReader(stream)
        parts: List[str] = []
        for page in reader.pages:
            parts.append(page.extract_text() or "")
    except (PdfReadError, OSError, ValueError) as exc:
        raise UnreadableFile("Unable to read the PDF: {}".format(exc)) from exc

    if not any(part.strip() for part in parts):
        raise PdfExtractionFailed("Could not extract text from PDF.")

    logger.debug("Extracted text from %d PDF pages", len(parts))
    return "\n\n".join(parts) + "\n\n"


def _decode_text(data: bytes, filename: str) -> str:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise UnreadableFile("Unable to read '{}': not UTF-8 text.".format(filename)) from exc
    # Same newline handling as text-mode file reads
    return text.replace("\r\n", "\n").replace("\r", "\n")


def load_bytes(filename: str, data: bytes) -> LoadedSource:
    """Build a LoadedSource from an uploaded file's name and content."""
    name = Path(filename).name
    source_format = format_for_path(name)

    if source_format is SourceFormat.PDF_EXTRACTED:
        text = extract_pdf_text(io.BytesIO(data))
    else:
        text = _decode_text(data, name)

    if not text.strip():
        raise EmptyContent("The file appears to be empty.")

    return LoadedSource(text=text, source_format=source_format, filename=name)


def load_source(path: Union[str, Path]) -> LoadedSource:
    """Read a file from disk into a LoadedSource.

    Raises:
        UnsupportedFormat, UnreadableFile, PdfExtractionFailed, EmptyContent
    """
    file_path = Path(path)
    format_for_path(file_path)
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise UnreadableFile("Unable to read the file: {}".format(exc)) from exc

    source = load_bytes(file_path.name, data)
    logger.info("Loaded %s (%s, %d chars)", source.filename, source.source_format.value, len(source.text))
    return source
