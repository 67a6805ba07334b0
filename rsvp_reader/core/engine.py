"""Playback state machine: timed advancement, navigation, and speed control.

WHY: Every presentation layer (terminal player, HTTP sessions, a GUI)
needs the same behavior: show one word at a time, advance on a timer,
jump around by word or paragraph, and change speed without losing the
reader's place. Keeping that logic in one engine keeps the invariants
(index range, WPM range, progress range, one active timer) in one place.

HOW: PlaybackEngine owns a Document and a PlaybackState. States are
Empty (no document), Paused, and Playing. play() asks the injected
scheduler for a periodic tick at 60 / WPM seconds; every tick advances
one word, and the last word pauses playback. All public operations are
serialized through one re-entrant lock, so a tick fired on a timer
thread never interleaves with a navigation call. After each outermost
state-changing call, the optional on_change observer receives a
ReaderSnapshot.

RULES:
- No operation raises on bad indices or speeds; they clamp
- load() fails with EmptyContent and leaves prior state untouched
- At most one tick source is active; it is always cancelled before a
  new one is scheduled (pause, speed change while playing, restart,
  close, load)
- Ticks from a cancelled tick source are ignored (generation counter)
- A tick that raises (usually the observer) pauses playback before the
  exception reaches the scheduler, so Playing always has a live timer
- progress = index / (count - 1); 1.0 for a one-word document; 0.0 empty
- Changing speed while playing only changes the delay to the next tick
"""

from __future__ import annotations

import functools
import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Optional, Tuple, Union

from rsvp_reader.config import (
    DEFAULT_ORP_MODE,
    DEFAULT_SKIP_WORDS,
    DEFAULT_SPEED_STEP,
    DEFAULT_WPM,
    clamp_wpm,
)
from rsvp_reader.core.ir import (
    Document,
    Paragraph,
    PlaybackState,
    ReaderSnapshot,
    WordSplit,
)
from rsvp_reader.core.normalizer import EmptyContent, SourceFormat, normalize
from rsvp_reader.core.orp import OrpMode, split_word
from rsvp_reader.core.scheduler import Scheduler, ThreadingScheduler
from rsvp_reader.core.segmenter import segment

logger = logging.getLogger(__name__)

Observer = Callable[[ReaderSnapshot], None]


def _mutation(method):
    """Run ``method`` under the engine lock and notify the observer once.

    Nested mutations (restart → pause) notify only when the outermost
    call returns. The observer runs after the lock is released.
    """

    @functools.wraps(method)
    def wrapper(self: "PlaybackEngine", *args, **kwargs):
        with self._lock:
            self._depth += 1
            try:
                result = method(self, *args, **kwargs)
            finally:
                self._depth -= 1
            snapshot = None
            if self._depth == 0 and self.on_change is not None:
                snapshot = self._snapshot_locked()
        if snapshot is not None:
            self.on_change(snapshot)
        return result

    return wrapper


class PlaybackEngine:
    """RSVP playback over a segmented document.

    Args:
        scheduler: Tick source; a ThreadingScheduler when omitted.
        words_per_minute: Initial speed (clamped to [100, 1000]).
        orp_mode: Fixation mode used for the current-word split.
        skip_words: Default word count for skip_forward/skip_backward.
        speed_step: Default WPM delta for increase/decrease_speed.
        on_change: Observer called with a ReaderSnapshot after each
            state-changing operation.
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        *,
        words_per_minute: int = DEFAULT_WPM,
        orp_mode: Union[str, OrpMode] = DEFAULT_ORP_MODE,
        skip_words: int = DEFAULT_SKIP_WORDS,
        speed_step: int = DEFAULT_SPEED_STEP,
        on_change: Optional[Observer] = None,
    ) -> None:
        self._scheduler: Scheduler = scheduler if scheduler is not None else ThreadingScheduler()
        self._lock = threading.RLock()
        self._depth = 0
        self._document = Document()
        self._state = PlaybackState(words_per_minute=clamp_wpm(words_per_minute))
        self._orp_mode = OrpMode.parse(orp_mode)
        self.skip_words = skip_words
        self.speed_step = speed_step
        self.on_change = on_change
        self._token: Any = None
        self._generation = 0

    def __enter__(self) -> "PlaybackEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        """A copy of the current playback state."""
        with self._lock:
            return replace(self._state)

    @property
    def document(self) -> Document:
        return self._document

    @property
    def paragraphs(self) -> Tuple[Paragraph, ...]:
        return self._document.paragraphs

    @property
    def word_count(self) -> int:
        return self._document.word_count

    @property
    def has_content(self) -> bool:
        return not self._document.is_empty

    @property
    def is_playing(self) -> bool:
        return self._state.is_playing

    @property
    def current_index(self) -> int:
        return self._state.current_index

    @property
    def words_per_minute(self) -> int:
        return self._state.words_per_minute

    @property
    def orp_mode(self) -> OrpMode:
        return self._orp_mode

    @property
    def interval(self) -> float:
        """Seconds each word stays on screen at the current speed."""
        return 60.0 / self._state.words_per_minute

    @property
    def current_word(self) -> str:
        with self._lock:
            return self._current_word_locked()

    @property
    def current_split(self) -> WordSplit:
        with self._lock:
            return split_word(self._current_word_locked(), self._orp_mode)

    def snapshot(self) -> ReaderSnapshot:
        with self._lock:
            return self._snapshot_locked()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @_mutation
    def load(self, text: str, source_format: Union[str, SourceFormat] = SourceFormat.PLAIN) -> None:
        """Normalize, segment, and load ``text`` as the new document.

        Raises:
            EmptyContent: If the text is blank after normalization. The
                previously loaded document and position are kept.
        """
        document = segment(normalize(text, source_format))
        self._replace_document(document)

    @_mutation
    def load_document(self, document: Document) -> None:
        """Load an already segmented document.

        Raises:
            EmptyContent: If ``document`` has no words.
        """
        if document.is_empty:
            raise EmptyContent()
        self._replace_document(document)

    @_mutation
    def close(self) -> None:
        """Stop playback and return to the Empty state."""
        self.pause()
        self._document = Document()
        self._state.current_index = 0
        self._state.current_paragraph_index = 0
        self._state.progress = 0.0
        logger.debug("Closed document")

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    @_mutation
    def play(self) -> None:
        if not self.has_content or self._state.is_playing:
            return
        self._state.is_playing = True
        self._start_ticks()
        logger.debug("Playing at %d WPM from word %d", self._state.words_per_minute, self._state.current_index)

    @_mutation
    def pause(self) -> None:
        self._stop_ticks()
        if self._state.is_playing:
            self._state.is_playing = False
            logger.debug("Paused at word %d", self._state.current_index)

    @_mutation
    def toggle(self) -> None:
        if self._state.is_playing:
            self.pause()
        else:
            self.play()

    @_mutation
    def restart(self) -> None:
        self.pause()
        self._state.current_index = 0
        self._state.current_paragraph_index = 0
        self._recompute()

    @_mutation
    def tick(self) -> None:
        """Advance one word; pause at the last word. No-op unless playing."""
        if not self._state.is_playing:
            return
        if self._state.current_index < self.word_count - 1:
            self._state.current_index += 1
            self._recompute()
        else:
            self.pause()
            logger.debug("Reached end of document")

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @_mutation
    def skip_forward(self, count: Optional[int] = None) -> None:
        step = self.skip_words if count is None else count
        self._move_to(self._state.current_index + step)

    @_mutation
    def skip_backward(self, count: Optional[int] = None) -> None:
        step = self.skip_words if count is None else count
        self._move_to(self._state.current_index - step)

    @_mutation
    def go_to_word(self, index: int) -> None:
        self._move_to(index)

    @_mutation
    def go_to_paragraph(self, paragraph: Union[Paragraph, int]) -> None:
        """Pause and jump to the first word of ``paragraph`` (object or id)."""
        paragraphs = self._document.paragraphs
        if not paragraphs:
            return
        if isinstance(paragraph, Paragraph):
            start = paragraph.start
        else:
            start = paragraphs[max(0, min(int(paragraph), len(paragraphs) - 1))].start
        self.pause()
        self._move_to(start)

    @_mutation
    def next_paragraph(self) -> None:
        current = self._state.current_paragraph_index
        if current >= len(self._document.paragraphs) - 1:
            return
        self.go_to_paragraph(self._document.paragraphs[current + 1])

    @_mutation
    def previous_paragraph(self) -> None:
        current = self._state.current_paragraph_index
        if current <= 0 or not self._document.paragraphs:
            return
        self.go_to_paragraph(self._document.paragraphs[current - 1])

    # ------------------------------------------------------------------
    # Speed and display
    # ------------------------------------------------------------------

    @_mutation
    def set_words_per_minute(self, value: int) -> None:
        """Clamp and apply a new speed; reschedule the tick when playing."""
        self._state.words_per_minute = clamp_wpm(value)
        if self._state.is_playing:
            self._start_ticks()

    @_mutation
    def increase_speed(self, delta: Optional[int] = None) -> None:
        step = self.speed_step if delta is None else delta
        self.set_words_per_minute(self._state.words_per_minute + step)

    @_mutation
    def decrease_speed(self, delta: Optional[int] = None) -> None:
        step = self.speed_step if delta is None else delta
        self.set_words_per_minute(self._state.words_per_minute - step)

    @_mutation
    def set_orp_mode(self, mode: Union[str, OrpMode]) -> None:
        self._orp_mode = OrpMode.parse(mode)

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _replace_document(self, document: Document) -> None:
        self._stop_ticks()
        self._document = document
        self._state.is_playing = False
        self._state.current_index = 0
        self._state.current_paragraph_index = 0
        self._recompute()
        logger.info(
            "Loaded %d words in %d paragraphs",
            document.word_count,
            len(document.paragraphs),
        )

    def _move_to(self, index: int) -> None:
        if not self.has_content:
            return
        self._state.current_index = max(0, min(index, self.word_count - 1))
        self._recompute()

    def _recompute(self) -> None:
        count = self.word_count
        index = self._state.current_index
        if count == 0:
            self._state.progress = 0.0
        elif count == 1:
            self._state.progress = 1.0
        else:
            self._state.progress = index / (count - 1)

        for position, paragraph in enumerate(self._document.paragraphs):
            if paragraph.contains(index):
                self._state.current_paragraph_index = position
                return

    def _start_ticks(self) -> None:
        self._stop_ticks()
        generation = self._generation
        self._token = self._scheduler.schedule(
            self.interval,
            lambda: self._scheduled_tick(generation),
        )

    def _stop_ticks(self) -> None:
        if self._token is not None:
            self._scheduler.cancel(self._token)
            self._token = None
        self._generation += 1

    def _scheduled_tick(self, generation: int) -> None:
        try:
            self._tick_if_current(generation)
        except Exception:
            self._halt(generation)
            raise

    @_mutation
    def _tick_if_current(self, generation: int) -> None:
        if generation == self._generation:
            self.tick()

    def _halt(self, generation: int) -> None:
        # The scheduler drops a tick source whose callback raised. The
        # observer is not notified again; it is what usually failed.
        with self._lock:
            if generation != self._generation or not self._state.is_playing:
                return
            self._stop_ticks()
            self._state.is_playing = False
            logger.warning("Playback paused at word %d after a failed tick", self._state.current_index)

    def _current_word_locked(self) -> str:
        words = self._document.words
        if 0 <= self._state.current_index < len(words):
            return words[self._state.current_index]
        return ""

    def _snapshot_locked(self) -> ReaderSnapshot:
        word = self._current_word_locked()
        return ReaderSnapshot(
            word=word,
            split=split_word(word, self._orp_mode),
            current_index=self._state.current_index,
            word_count=self.word_count,
            progress=self._state.progress,
            is_playing=self._state.is_playing,
            words_per_minute=self._state.words_per_minute,
            current_paragraph_index=self._state.current_paragraph_index,
            orp_mode=self._orp_mode.value,
            paragraphs=self._document.paragraphs,
        )
