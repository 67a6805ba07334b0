"""Periodic tick sources for the playback engine.

WHY: The engine advances one word per interval, but it must not care
whether the interval is measured by a timer thread (terminal player),
the server's asyncio event loop (HTTP sessions), or a simulated clock
in tests. The engine only needs "call this every N seconds until I cancel".

HOW: Every scheduler implements two methods:
  schedule(interval, callback) -> token   start a periodic callback
  cancel(token)                           stop it (synchronous, idempotent)
ThreadingScheduler re-arms a daemon threading.Timer after each call.
AsyncioScheduler re-arms loop.call_later on the owning event loop.
ManualScheduler keeps a simulated clock that tests move with advance().

RULES:
- Callbacks repeat every ``interval`` seconds until cancelled
- cancel() on an unknown or already-cancelled token is a no-op
- A callback never fires after cancel() has returned for its token
  (ThreadingScheduler may still be inside a callback that started
  earlier; the engine guards against that with a generation counter)
- Exceptions raised by a callback on a timer thread are logged and stop
  that token's repetition; ManualScheduler lets them propagate to the test
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]

# Float tolerance when comparing simulated due times.
_EPSILON = 1e-9


class Scheduler(Protocol):
    """Interface the playback engine depends on."""

    def schedule(self, interval: float, callback: Callback) -> Any:
        """Start calling ``callback`` every ``interval`` seconds; return a token."""

    def cancel(self, token: Any) -> None:
        """Stop the periodic callback identified by ``token``."""


# ---------------------------------------------------------------------------
# Real clock: threading.Timer
# ---------------------------------------------------------------------------


class _PeriodicTimer:
    """Cancellation token for ThreadingScheduler; re-arms itself after each call."""

    def __init__(self, interval: float, callback: Callback) -> None:
        self.interval = interval
        self._callback = callback
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def arm(self) -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self._timer = threading.Timer(self.interval, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        self._cancelled.set()
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        if self._cancelled.is_set():
            return
        try:
            self._callback()
        except Exception:
            logger.exception("Tick callback failed; stopping periodic timer")
            self.cancel()
            return
        self.arm()


class ThreadingScheduler:
    """Periodic callbacks on daemon timer threads."""

    def schedule(self, interval: float, callback: Callback) -> _PeriodicTimer:
        token = _PeriodicTimer(interval, callback)
        token.arm()
        return token

    def cancel(self, token: Any) -> None:
        if isinstance(token, _PeriodicTimer):
            token.cancel()


# ---------------------------------------------------------------------------
# Event loop: asyncio call_later
# ---------------------------------------------------------------------------


class _LoopToken:
    def __init__(self) -> None:
        self.handle: Optional[asyncio.TimerHandle] = None
        self.cancelled = False


class AsyncioScheduler:
    """Periodic callbacks on an asyncio event loop.

    RULES:
    - schedule() and cancel() must be called from the loop's thread
    - With no explicit loop, the running loop is used at schedule time
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def schedule(self, interval: float, callback: Callback) -> _LoopToken:
        loop = self._get_loop()
        token = _LoopToken()

        def _fire() -> None:
            if token.cancelled:
                return
            token.handle = loop.call_later(interval, _fire)
            try:
                callback()
            except Exception:
                logger.exception("Tick callback failed; stopping periodic timer")
                self.cancel(token)

        token.handle = loop.call_later(interval, _fire)
        return token

    def cancel(self, token: Any) -> None:
        if not isinstance(token, _LoopToken) or token.cancelled:
            return
        token.cancelled = True
        if token.handle is not None:
            token.handle.cancel()
            token.handle = None


# ---------------------------------------------------------------------------
# Simulated clock
# ---------------------------------------------------------------------------


class ManualScheduler:
    """Deterministic scheduler driven by an explicit simulated clock.

    WHY: Playback timing tests must not sleep. ManualScheduler lets a test
    say "two seconds pass" and observe exactly the ticks that would fire.

    HOW: Each schedule() stores [next_due, interval, callback] under an
    integer token. advance() repeatedly fires the earliest due entry
    (moving ``now`` to its due time) until nothing is due before the
    target time, then sets ``now`` to the target.

    RULES:
    - Entries due at the same time fire in token order
    - A callback may cancel its own token or schedule new ones
    - Exceptions from callbacks propagate to the caller of advance()
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._entries: Dict[int, List[Any]] = {}
        self._ids = itertools.count(1)

    def schedule(self, interval: float, callback: Callback) -> int:
        token = next(self._ids)
        self._entries[token] = [self.now + interval, interval, callback]
        return token

    def cancel(self, token: Any) -> None:
        self._entries.pop(token, None)

    @property
    def active_count(self) -> int:
        """Number of periodic callbacks currently scheduled."""
        return len(self._entries)

    def interval_of(self, token: Any) -> Optional[float]:
        entry = self._entries.get(token)
        return entry[1] if entry is not None else None

    def next_due(self) -> Optional[float]:
        """Simulated time of the next callback, or None if nothing is scheduled."""
        if not self._entries:
            return None
        return min(entry[0] for entry in self._entries.values())

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every callback that comes due.

        Returns:
            Number of callbacks fired.
        """
        target = self.now + seconds
        fired = 0
        while True:
            due = [
                (entry[0], token)
                for token, entry in self._entries.items()
                if entry[0] <= target + _EPSILON
            ]
            if not due:
                break
            when, token = min(due)
            entry = self._entries[token]
            self.now = max(self.now, when)
            entry[0] = when + entry[1]
            fired += 1
            entry[2]()
        self.now = target
        return fired
