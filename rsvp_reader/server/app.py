"""FastAPI application exposing reading sessions over HTTP.

WHY: Browser and mobile front ends need the same playback engine as the
terminal player without re-implementing normalization, fixation, or
timing. An HTTP API lets any client create a session, poll its current
word, and drive navigation and speed.

HOW: A single FastAPI app exposes session endpoints grouped by tags.
POST /sessions loads raw text; POST /sessions/upload loads a .txt, .md,
or .pdf file through the ingest loader. Each session owns a
PlaybackEngine on an AsyncioScheduler bound to the server's event loop,
so playback keeps advancing between requests without a thread per
session; clients poll GET /sessions/{id} for the current word. GET
/sessions/{id}/paragraphs returns the full text for a word browser.

RULES:
- Error responses use a consistent ErrorResponse schema
- Blank content → 422; unsupported or unreadable upload → 400
- Unknown session → 404; store full → 429
- Action names are the keys of rsvp_reader.controls.ACTIONS
- The session store is a module-level singleton; idle sessions are
  expired every 5 minutes by a lifespan task and closed on shutdown
- Engines are only driven from the event loop thread (async endpoints
  and the lifespan), as AsyncioScheduler requires
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from rsvp_reader import __version__
from rsvp_reader.config import DEFAULT_ORP_MODE, DEFAULT_WPM, SUPPORTED_EXTENSIONS
from rsvp_reader.controls import ACTIONS, run_action
from rsvp_reader.core.engine import PlaybackEngine
from rsvp_reader.core.normalizer import EmptyContent
from rsvp_reader.core.scheduler import AsyncioScheduler
from rsvp_reader.ingest.loader import LoaderError, load_bytes
from rsvp_reader.server.models import (
    CreateSessionRequest,
    ErrorResponse,
    HealthResponse,
    OrpModeName,
    ParagraphListResponse,
    ParagraphModel,
    SeekRequest,
    SnapshotResponse,
    SpeedRequest,
)
from rsvp_reader.server.sessions import Session, SessionLimitReached, SessionStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

session_store = SessionStore()


async def _periodic_cleanup() -> None:
    """Expire idle sessions every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        session_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup; stop it and close sessions on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    session_store.clear()


app = FastAPI(
    lifespan=lifespan,
    title="RSVP Reader API",
    description=(
        "Create reading sessions from text or files and play them one word "
        "at a time. Poll a session for its current word and fixation letter; "
        "drive playback, navigation, and speed with actions."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _snapshot_response(session: Session) -> SnapshotResponse:
    return SnapshotResponse.from_snapshot(session.id, session.filename, session.engine.snapshot())


def _get_session_or_404(session_id: str) -> Session:
    session = session_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return session


def _new_engine(words_per_minute: Optional[int], orp_mode: Optional[OrpModeName]) -> PlaybackEngine:
    return PlaybackEngine(
        scheduler=AsyncioScheduler(),
        words_per_minute=words_per_minute if words_per_minute is not None else DEFAULT_WPM,
        orp_mode=orp_mode.value if orp_mode is not None else DEFAULT_ORP_MODE,
    )


def _register(filename: str, engine: PlaybackEngine) -> Session:
    try:
        return session_store.create_session(filename, engine)
    except SessionLimitReached as exc:
        engine.close()
        raise HTTPException(status_code=429, detail=str(exc))


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SnapshotResponse,
    status_code=201,
    tags=["sessions"],
    summary="Create a reading session from text",
    responses={
        422: {"model": ErrorResponse, "description": "Text is blank after normalization"},
        429: {"model": ErrorResponse, "description": "Too many open sessions"},
    },
)
async def create_session(request: CreateSessionRequest) -> SnapshotResponse:
    engine = _new_engine(request.words_per_minute, request.orp_mode)
    try:
        engine.load(request.text, request.source_format.value)
    except EmptyContent as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    session = _register("<text>", engine)
    return _snapshot_response(session)


@app.post(
    "/sessions/upload",
    response_model=SnapshotResponse,
    status_code=201,
    tags=["sessions"],
    summary="Create a reading session from a file",
    description=(
        "Upload a .txt, .md, or .pdf file. The format is chosen from the "
        "file extension."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported or unreadable file"},
        422: {"model": ErrorResponse, "description": "File has no readable text"},
        429: {"model": ErrorResponse, "description": "Too many open sessions"},
    },
)
async def upload_session(
    file: Annotated[
        UploadFile,
        File(description="Text, Markdown, or PDF file to read."),
    ],
    words_per_minute: Annotated[
        Optional[int],
        Form(description="Initial reading speed (clamped to 100-1000)."),
    ] = None,
    orp_mode: Annotated[
        Optional[OrpModeName],
        Form(description="Fixation letter mode."),
    ] = None,
) -> SnapshotResponse:
    # Sanitize filename to prevent path traversal
    filename = Path(file.filename or "upload").name
    content = await file.read()
    logger.info("Received upload %s (%d bytes)", filename, len(content))

    try:
        source = load_bytes(filename, content)
    except LoaderError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except EmptyContent as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    engine = _new_engine(words_per_minute, orp_mode)
    try:
        engine.load(source.text, source.source_format)
    except EmptyContent as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    session = _register(source.filename, engine)
    return _snapshot_response(session)


@app.get(
    "/sessions/{session_id}",
    response_model=SnapshotResponse,
    tags=["sessions"],
    summary="Get the current word and playback state",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def get_session(session_id: str) -> SnapshotResponse:
    return _snapshot_response(_get_session_or_404(session_id))


@app.get(
    "/sessions/{session_id}/paragraphs",
    response_model=ParagraphListResponse,
    tags=["sessions"],
    summary="List the paragraphs of a session's document",
    description=(
        "Returns every paragraph with its text and words, enough to render "
        "the full document. Seek to word_range[0] + i to jump to a word."
    ),
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def list_paragraphs(session_id: str) -> ParagraphListResponse:
    session = _get_session_or_404(session_id)
    document = session.engine.document
    return ParagraphListResponse(
        session_id=session.id,
        paragraphs=[
            ParagraphModel.from_paragraph(p, document.paragraph_words(p))
            for p in document.paragraphs
        ],
    )


@app.post(
    "/sessions/{session_id}/actions/{action}",
    response_model=SnapshotResponse,
    tags=["playback"],
    summary="Run a playback action",
    description="Available actions: {}.".format(", ".join(sorted(ACTIONS))),
    responses={
        400: {"model": ErrorResponse, "description": "Unknown action"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def run_session_action(session_id: str, action: str) -> SnapshotResponse:
    session = _get_session_or_404(session_id)
    if action not in ACTIONS or action == "close":
        available = ", ".join(sorted(a for a in ACTIONS if a != "close"))
        raise HTTPException(
            status_code=400,
            detail="Unknown action '{}'. Available: {}".format(action, available),
        )
    run_action(session.engine, action)
    return _snapshot_response(session)


@app.post(
    "/sessions/{session_id}/seek",
    response_model=SnapshotResponse,
    tags=["playback"],
    summary="Jump to a word or paragraph",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
        422: {"model": ErrorResponse, "description": "Neither or both targets given"},
    },
)
async def seek(session_id: str, request: SeekRequest) -> SnapshotResponse:
    session = _get_session_or_404(session_id)
    if (request.word_index is None) == (request.paragraph_id is None):
        raise HTTPException(
            status_code=422,
            detail="Provide exactly one of word_index or paragraph_id.",
        )
    if request.word_index is not None:
        session.engine.go_to_word(request.word_index)
    else:
        session.engine.go_to_paragraph(request.paragraph_id)
    return _snapshot_response(session)


@app.put(
    "/sessions/{session_id}/speed",
    response_model=SnapshotResponse,
    tags=["playback"],
    summary="Set the reading speed",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def set_speed(session_id: str, request: SpeedRequest) -> SnapshotResponse:
    session = _get_session_or_404(session_id)
    session.engine.set_words_per_minute(request.words_per_minute)
    return _snapshot_response(session)


@app.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["sessions"],
    summary="Close a reading session",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def delete_session(session_id: str) -> Response:
    if not session_store.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Meta
# ---------------------------------------------------------------------------


@app.get(
    "/formats",
    tags=["meta"],
    summary="List supported upload extensions",
)
async def list_formats() -> dict:
    return {"extensions": dict(sorted(SUPPORTED_EXTENSIONS.items()))}


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["meta"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        sessions=len(session_store.list_sessions()),
    )


def run_api():
    """Entry point for the rsvp-api console script."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
