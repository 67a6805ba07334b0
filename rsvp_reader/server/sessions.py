"""In-memory reading-session store with TTL cleanup.

WHY: The HTTP API hands each client a reading session: a loaded
document plus a playback engine that keeps ticking between requests.
Sessions must survive across requests, be isolated from each other,
and disappear when abandoned so their timers do not run forever.

HOW: Two components work together:
  Session       — dataclass holding the session id, engine, and timestamps
  SessionStore  — thread-safe dict-based store with create/get/list/delete
                  and TTL cleanup of idle sessions

RULES:
- All store mutations are protected by threading.Lock for thread safety
- Session IDs are UUID4 hex strings generated at creation time
- get_session() refreshes last_access; idle time is measured from it
- Deleting or expiring a session closes its engine (cancels its timer)
- create_session() raises SessionLimitReached when the store is full
- Default TTL comes from config.SESSION_TTL_SECONDS
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from rsvp_reader.config import MAX_SESSIONS, SESSION_TTL_SECONDS
from rsvp_reader.core.engine import PlaybackEngine

logger = logging.getLogger(__name__)


class SessionLimitReached(Exception):
    """Raised when the store already holds ``max_sessions`` sessions."""


@dataclass
class Session:
    """One client's reading session.

    RULES:
    - id: UUID4 hex, unique and immutable after creation
    - filename: display name of the loaded source ("<text>" for raw text)
    - engine: the session's PlaybackEngine (owns its own scheduler)
    - created_at / last_access: epoch seconds
    """

    id: str
    filename: str
    engine: PlaybackEngine
    created_at: float
    last_access: float


class SessionStore:
    """Thread-safe in-memory store for reading sessions."""

    def __init__(
        self,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        max_sessions: int = MAX_SESSIONS,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions

    def create_session(self, filename: str, engine: PlaybackEngine) -> Session:
        """Register a loaded engine under a new session id.

        Raises:
            SessionLimitReached: If the store is full.
        """
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise SessionLimitReached(
                    "Maximum number of concurrent sessions ({}) reached".format(
                        self.max_sessions
                    )
                )

            session_id = uuid.uuid4().hex
            now = time.time()
            session = Session(
                id=session_id,
                filename=filename,
                engine=engine,
                created_at=now,
                last_access=now,
            )
            self._sessions[session_id] = session

        logger.info("Created session %s for %s", session_id, filename)
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        """Return the live session (refreshing its idle timer), or None."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.last_access = time.time()
            return session

    def list_sessions(self) -> List[Session]:
        """All sessions, oldest first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def delete_session(self, session_id: str) -> bool:
        """Close and remove a session. Returns False if it did not exist."""
        with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is None:
            return False

        session.engine.close()
        logger.info("Deleted session %s", session_id)
        return True

    def cleanup_expired(self) -> int:
        """Close and remove sessions idle for longer than the TTL.

        Returns:
            Number of sessions removed.
        """
        now = time.time()
        expired: List[Session] = []

        with self._lock:
            for session_id, session in list(self._sessions.items()):
                if now - session.last_access > self._ttl_seconds:
                    expired.append(self._sessions.pop(session_id))

        for session in expired:
            session.engine.close()
            logger.info("Expired session %s (idle %.0fs)", session.id, now - session.last_access)

        return len(expired)

    def clear(self) -> None:
        """Close and remove every session."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.engine.close()
