"""Unit tests for the playback state machine.

WHY: The engine is where every invariant meets: the index stays in
range, speed stays in range, at most one timer runs, and a failed load
changes nothing. A regression here shows up as a reader jumping to the
wrong word or two timers racing each other.

HOW: Tests are organized by class, one per concern:
  - TestInitialState: the Empty state and operations on it
  - TestLoading: load, load_document, failed loads, close
  - TestPlayback: play/pause/toggle/restart and timed advancement
  - TestNavigation: skips, word and paragraph jumps, clamping
  - TestSpeed: clamping and rescheduling while playing
  - TestProgress: progress and current paragraph bookkeeping
  - TestObserver: one snapshot per outermost operation
  - TestTimerSafety: stale ticks, failing ticks, context manager
  - TestRealClock: short runs on the threading scheduler

RULES:
- Timing uses ManualScheduler at 240 WPM (0.25 s per word)
- SAMPLE_TEXT has paragraphs [0, 4), [4, 9), [9, 12)
"""

from __future__ import annotations

import threading
import time

import pytest

from rsvp_reader.config import MAX_WPM, MIN_WPM
from rsvp_reader.core.engine import PlaybackEngine
from rsvp_reader.core.ir import WordSplit
from rsvp_reader.core.normalizer import EmptyContent
from rsvp_reader.core.orp import OrpMode
from rsvp_reader.core.scheduler import ManualScheduler
from rsvp_reader.core.segmenter import segment


class _RecordingScheduler:
    """Scheduler whose cancel() does not stop the stored callbacks."""

    def __init__(self):
        self.callbacks = []
        self.cancelled = []

    def schedule(self, interval, callback):
        self.callbacks.append(callback)
        return len(self.callbacks)

    def cancel(self, token):
        self.cancelled.append(token)


# ---------------------------------------------------------------------------
# TestInitialState
# ---------------------------------------------------------------------------


class TestInitialState:
    """A new engine is Empty and every operation on it is a no-op."""

    def test_empty_snapshot(self, engine):
        snapshot = engine.snapshot()
        assert snapshot.word == ""
        assert snapshot.split == WordSplit("", "", "")
        assert snapshot.word_count == 0
        assert snapshot.progress == 0.0
        assert not snapshot.is_playing
        assert not snapshot.has_content

    def test_play_on_empty_stays_paused(self, engine, scheduler):
        engine.play()
        assert not engine.is_playing
        assert scheduler.active_count == 0

    def test_navigation_on_empty_is_noop(self, engine):
        engine.skip_forward()
        engine.skip_backward(3)
        engine.go_to_word(7)
        engine.go_to_paragraph(2)
        engine.next_paragraph()
        engine.previous_paragraph()
        engine.tick()
        assert engine.current_index == 0
        assert engine.current_word == ""

    def test_defaults_from_constructor(self, scheduler):
        engine = PlaybackEngine(scheduler, words_per_minute=10, orp_mode="center")
        assert engine.words_per_minute == MIN_WPM
        assert engine.orp_mode is OrpMode.CENTER

    def test_unknown_orp_mode_rejected(self, scheduler):
        with pytest.raises(ValueError):
            PlaybackEngine(scheduler, orp_mode="middle")


# ---------------------------------------------------------------------------
# TestLoading
# ---------------------------------------------------------------------------


class TestLoading:
    """load() replaces the document; failures leave state untouched."""

    def test_load_resets_to_first_word(self, loaded_engine):
        assert loaded_engine.word_count == 12
        assert loaded_engine.current_index == 0
        assert loaded_engine.current_word == "The"
        assert not loaded_engine.is_playing
        assert len(loaded_engine.paragraphs) == 3

    def test_load_applies_format(self, engine):
        engine.load("# Title\n\n**bold** move", "markdown")
        assert engine.document.words == ("Title", "bold", "move")

    def test_blank_load_keeps_previous_document(self, loaded_engine):
        loaded_engine.go_to_word(5)
        with pytest.raises(EmptyContent):
            loaded_engine.load("   \n\n  ")
        assert loaded_engine.word_count == 12
        assert loaded_engine.current_index == 5
        assert loaded_engine.current_word == "over"

    def test_blank_load_keeps_playing(self, loaded_engine, scheduler):
        loaded_engine.play()
        with pytest.raises(EmptyContent):
            loaded_engine.load("")
        assert loaded_engine.is_playing
        assert scheduler.active_count == 1

    def test_load_while_playing_stops_timer(self, loaded_engine, scheduler):
        loaded_engine.play()
        scheduler.advance(0.5)
        loaded_engine.load("fresh words here")
        assert not loaded_engine.is_playing
        assert loaded_engine.current_index == 0
        assert scheduler.active_count == 0

    def test_load_document(self, engine):
        engine.load_document(segment("one two\nthree"))
        assert engine.word_count == 3
        assert len(engine.paragraphs) == 2

    def test_load_empty_document_raises(self, loaded_engine):
        with pytest.raises(EmptyContent):
            loaded_engine.load_document(segment(""))
        assert loaded_engine.word_count == 12

    def test_close_returns_to_empty(self, loaded_engine, scheduler):
        loaded_engine.play()
        loaded_engine.go_to_word(6)
        loaded_engine.close()
        assert not loaded_engine.has_content
        assert not loaded_engine.is_playing
        assert loaded_engine.current_index == 0
        assert loaded_engine.snapshot().progress == 0.0
        assert scheduler.active_count == 0


# ---------------------------------------------------------------------------
# TestPlayback
# ---------------------------------------------------------------------------


class TestPlayback:
    """Timed advancement and the Paused/Playing transitions."""

    def test_play_schedules_one_tick_source(self, loaded_engine, scheduler):
        loaded_engine.play()
        assert loaded_engine.is_playing
        assert scheduler.active_count == 1
        assert scheduler.next_due() == 0.25

    def test_play_twice_keeps_one_timer(self, loaded_engine, scheduler):
        loaded_engine.play()
        loaded_engine.play()
        assert scheduler.active_count == 1

    def test_ticks_advance_one_word_each(self, loaded_engine, scheduler):
        loaded_engine.play()
        scheduler.advance(0.25)
        assert loaded_engine.current_index == 1
        scheduler.advance(0.75)
        assert loaded_engine.current_index == 4
        assert loaded_engine.current_word == "jumps"

    def test_playback_pauses_at_last_word(self, loaded_engine, scheduler):
        loaded_engine.play()
        scheduler.advance(60.0)
        assert loaded_engine.current_index == 11
        assert not loaded_engine.is_playing
        assert scheduler.active_count == 0
        assert loaded_engine.snapshot().progress == 1.0

    def test_skip_to_end_then_tick(self, loaded_engine):
        loaded_engine.skip_forward(10_000)
        assert loaded_engine.current_index == loaded_engine.word_count - 1
        loaded_engine.tick()
        assert not loaded_engine.is_playing

    def test_play_at_end_then_tick_pauses(self, loaded_engine, scheduler):
        loaded_engine.go_to_word(11)
        loaded_engine.play()
        scheduler.advance(0.25)
        assert not loaded_engine.is_playing
        assert loaded_engine.current_index == 11

    def test_tick_while_paused_is_noop(self, loaded_engine):
        loaded_engine.tick()
        assert loaded_engine.current_index == 0

    def test_pause_cancels_timer(self, loaded_engine, scheduler):
        loaded_engine.play()
        scheduler.advance(0.5)
        loaded_engine.pause()
        scheduler.advance(5.0)
        assert loaded_engine.current_index == 2
        assert scheduler.active_count == 0

    def test_toggle(self, loaded_engine):
        loaded_engine.toggle()
        assert loaded_engine.is_playing
        loaded_engine.toggle()
        assert not loaded_engine.is_playing

    def test_restart(self, loaded_engine, scheduler):
        loaded_engine.go_to_word(7)
        loaded_engine.play()
        loaded_engine.restart()
        assert loaded_engine.current_index == 0
        assert not loaded_engine.is_playing
        assert loaded_engine.state.current_paragraph_index == 0
        assert scheduler.active_count == 0

    def test_single_word_document(self, engine, scheduler):
        engine.load("Hello")
        assert engine.snapshot().progress == 1.0
        engine.play()
        scheduler.advance(0.25)
        assert not engine.is_playing
        assert engine.current_index == 0


# ---------------------------------------------------------------------------
# TestNavigation
# ---------------------------------------------------------------------------


class TestNavigation:
    """Word and paragraph jumps clamp instead of failing."""

    @pytest.mark.parametrize("target, expected", [(-5, 0), (0, 0), (6, 6), (11, 11), (99, 11)])
    def test_go_to_word_clamps(self, loaded_engine, target, expected):
        loaded_engine.go_to_word(target)
        assert loaded_engine.current_index == expected

    def test_go_to_word_keeps_play_state(self, loaded_engine):
        loaded_engine.play()
        loaded_engine.go_to_word(3)
        assert loaded_engine.is_playing

    def test_skip_forward_default_step(self, loaded_engine):
        loaded_engine.skip_forward()
        assert loaded_engine.current_index == 10

    def test_skip_backward_default_step(self, loaded_engine):
        loaded_engine.go_to_word(11)
        loaded_engine.skip_backward()
        assert loaded_engine.current_index == 1
        loaded_engine.skip_backward()
        assert loaded_engine.current_index == 0

    def test_custom_skip_words(self, scheduler, sample_text):
        engine = PlaybackEngine(scheduler, skip_words=3)
        engine.load(sample_text)
        engine.skip_forward()
        assert engine.current_index == 3

    def test_go_to_paragraph_pauses(self, loaded_engine, scheduler):
        loaded_engine.play()
        loaded_engine.go_to_paragraph(1)
        assert loaded_engine.current_index == 4
        assert not loaded_engine.is_playing
        assert scheduler.active_count == 0

    def test_go_to_paragraph_object(self, loaded_engine):
        loaded_engine.go_to_paragraph(loaded_engine.paragraphs[2])
        assert loaded_engine.current_index == 9

    def test_go_to_paragraph_id_clamps(self, loaded_engine):
        loaded_engine.go_to_paragraph(99)
        assert loaded_engine.current_index == 9
        loaded_engine.go_to_paragraph(-1)
        assert loaded_engine.current_index == 0

    def test_next_paragraph(self, loaded_engine):
        loaded_engine.go_to_word(2)
        loaded_engine.next_paragraph()
        assert loaded_engine.current_index == 4
        loaded_engine.next_paragraph()
        assert loaded_engine.current_index == 9

    def test_next_paragraph_on_last_is_noop(self, loaded_engine):
        loaded_engine.go_to_word(10)
        loaded_engine.next_paragraph()
        assert loaded_engine.current_index == 10

    def test_previous_paragraph(self, loaded_engine):
        loaded_engine.go_to_word(6)
        loaded_engine.previous_paragraph()
        assert loaded_engine.current_index == 0

    def test_previous_paragraph_on_first_is_noop(self, loaded_engine):
        loaded_engine.go_to_word(2)
        loaded_engine.previous_paragraph()
        assert loaded_engine.current_index == 2

    def test_index_stays_in_range_over_mixed_operations(self, loaded_engine, scheduler):
        operations = [
            lambda e: e.skip_forward(7),
            lambda e: e.play(),
            lambda e: scheduler.advance(1.0),
            lambda e: e.skip_backward(50),
            lambda e: e.next_paragraph(),
            lambda e: e.next_paragraph(),
            lambda e: e.next_paragraph(),
            lambda e: e.play(),
            lambda e: scheduler.advance(10.0),
            lambda e: e.previous_paragraph(),
            lambda e: e.go_to_word(-3),
            lambda e: e.set_words_per_minute(5000),
            lambda e: e.skip_forward(10_000),
        ]
        for operation in operations:
            operation(loaded_engine)
            assert 0 <= loaded_engine.current_index <= loaded_engine.word_count - 1


# ---------------------------------------------------------------------------
# TestSpeed
# ---------------------------------------------------------------------------


class TestSpeed:
    """Speed is clamped and rescheduled without moving the reader."""

    @pytest.mark.parametrize("value, expected", [(50, MIN_WPM), (350, 350), (5000, MAX_WPM)])
    def test_set_words_per_minute_clamps(self, engine, value, expected):
        engine.set_words_per_minute(value)
        assert engine.words_per_minute == expected

    def test_interval(self, engine):
        assert engine.interval == 0.25

    def test_increase_and_decrease(self, engine):
        engine.increase_speed()
        assert engine.words_per_minute == 265
        engine.decrease_speed(65)
        assert engine.words_per_minute == 200

    def test_increase_stops_at_max(self, engine):
        engine.set_words_per_minute(990)
        engine.increase_speed()
        assert engine.words_per_minute == MAX_WPM

    def test_speed_change_while_playing_keeps_position(self, loaded_engine, scheduler):
        loaded_engine.play()
        scheduler.advance(0.5)
        assert loaded_engine.current_index == 2

        loaded_engine.set_words_per_minute(480)
        assert loaded_engine.current_index == 2
        assert loaded_engine.is_playing
        assert scheduler.active_count == 1
        assert scheduler.next_due() == 0.625

        scheduler.advance(0.125)
        assert loaded_engine.current_index == 3

    def test_speed_change_while_paused_schedules_nothing(self, loaded_engine, scheduler):
        loaded_engine.set_words_per_minute(600)
        assert scheduler.active_count == 0

    def test_set_orp_mode_changes_split(self, loaded_engine):
        loaded_engine.go_to_word(1)
        assert loaded_engine.current_split == WordSplit("q", "u", "ick")
        loaded_engine.set_orp_mode("center")
        assert loaded_engine.current_split == WordSplit("qu", "i", "ck")
        assert loaded_engine.snapshot().orp_mode == "center"


# ---------------------------------------------------------------------------
# TestProgress
# ---------------------------------------------------------------------------


class TestProgress:
    """progress and current_paragraph_index follow the index."""

    @pytest.mark.parametrize("index, expected", [(0, 0.0), (11, 1.0)])
    def test_progress_bounds(self, loaded_engine, index, expected):
        loaded_engine.go_to_word(index)
        assert loaded_engine.state.progress == expected

    def test_progress_midway(self, loaded_engine):
        loaded_engine.go_to_word(3)
        assert loaded_engine.state.progress == pytest.approx(3 / 11)

    @pytest.mark.parametrize("index, paragraph", [(0, 0), (3, 0), (4, 1), (8, 1), (9, 2), (11, 2)])
    def test_current_paragraph(self, loaded_engine, index, paragraph):
        loaded_engine.go_to_word(index)
        assert loaded_engine.state.current_paragraph_index == paragraph

    def test_state_is_a_copy(self, loaded_engine):
        state = loaded_engine.state
        state.current_index = 9
        assert loaded_engine.current_index == 0

    def test_snapshot_to_dict(self, loaded_engine):
        data = loaded_engine.snapshot().to_dict()
        assert data["word"] == "The"
        assert data["split"] == {"prefix": "T", "fixation": "h", "suffix": "e"}
        assert data["word_count"] == 12
        assert [p["word_range"] for p in data["paragraphs"]] == [[0, 4], [4, 9], [9, 12]]


# ---------------------------------------------------------------------------
# TestObserver
# ---------------------------------------------------------------------------


class TestObserver:
    """on_change sees one snapshot per outermost operation."""

    def test_single_notification_for_nested_operations(self, loaded_engine, snapshots):
        loaded_engine.on_change = snapshots.append
        loaded_engine.play()
        loaded_engine.go_to_paragraph(1)
        loaded_engine.restart()
        assert len(snapshots) == 3
        assert snapshots[1].current_index == 4
        assert not snapshots[1].is_playing
        assert snapshots[2].current_index == 0

    def test_notification_per_tick(self, loaded_engine, scheduler, snapshots):
        loaded_engine.on_change = snapshots.append
        loaded_engine.play()
        scheduler.advance(0.75)
        assert [s.current_index for s in snapshots] == [0, 1, 2, 3]

    def test_failed_load_does_not_notify(self, loaded_engine, snapshots):
        loaded_engine.on_change = snapshots.append
        with pytest.raises(EmptyContent):
            loaded_engine.load("  ")
        assert snapshots == []

    def test_observer_from_constructor(self, scheduler, snapshots, sample_text):
        engine = PlaybackEngine(scheduler, on_change=snapshots.append)
        engine.load(sample_text)
        assert snapshots[-1].word == "The"

    def test_observer_can_read_engine(self, loaded_engine):
        seen = []
        loaded_engine.on_change = lambda snapshot: seen.append(loaded_engine.current_word)
        loaded_engine.go_to_word(2)
        assert seen == ["brown"]


# ---------------------------------------------------------------------------
# TestTimerSafety
# ---------------------------------------------------------------------------


class TestTimerSafety:
    """Late ticks never move the reader; failed ticks never leave it Playing."""

    def test_stale_tick_after_pause_is_ignored(self, sample_text):
        scheduler = _RecordingScheduler()
        engine = PlaybackEngine(scheduler)
        engine.load(sample_text)
        engine.play()
        stale = scheduler.callbacks[-1]
        engine.pause()
        stale()
        assert engine.current_index == 0

    def test_stale_tick_after_speed_change_is_ignored(self, sample_text):
        scheduler = _RecordingScheduler()
        engine = PlaybackEngine(scheduler)
        engine.load(sample_text)
        engine.play()
        old = scheduler.callbacks[-1]
        engine.set_words_per_minute(500)
        new = scheduler.callbacks[-1]
        old()
        assert engine.current_index == 0
        new()
        assert engine.current_index == 1
        assert scheduler.cancelled == [1]

    def test_context_manager_closes(self, sample_text):
        scheduler = ManualScheduler()
        with PlaybackEngine(scheduler) as engine:
            engine.load(sample_text)
            engine.play()
        assert scheduler.active_count == 0
        assert not engine.has_content

    def test_failing_observer_pauses_playback(self, loaded_engine, scheduler):
        def _observer(snapshot):
            if snapshot.current_index == 1:
                raise BrokenPipeError()

        loaded_engine.play()
        loaded_engine.on_change = _observer
        with pytest.raises(BrokenPipeError):
            scheduler.advance(0.25)
        assert loaded_engine.current_index == 1
        assert not loaded_engine.is_playing
        assert scheduler.active_count == 0

        loaded_engine.on_change = None
        loaded_engine.play()
        assert loaded_engine.is_playing
        assert scheduler.active_count == 1
        scheduler.advance(0.25)
        assert loaded_engine.current_index == 2

    def test_failing_stale_tick_leaves_live_timer(self, sample_text):
        scheduler = _RecordingScheduler()
        engine = PlaybackEngine(scheduler)
        engine.load(sample_text)
        engine.play()
        stale = scheduler.callbacks[-1]
        engine.set_words_per_minute(500)

        def _observer(snapshot):
            raise BrokenPipeError()

        engine.on_change = _observer
        with pytest.raises(BrokenPipeError):
            stale()
        assert engine.is_playing
        assert scheduler.cancelled == [1]


# ---------------------------------------------------------------------------
# TestRealClock
# ---------------------------------------------------------------------------


class TestRealClock:
    """Short runs on the default ThreadingScheduler."""

    def test_plays_to_end(self):
        finished = threading.Event()

        def _observer(snapshot):
            if snapshot.current_index == 2 and not snapshot.is_playing:
                finished.set()

        engine = PlaybackEngine(words_per_minute=1000, on_change=_observer)
        try:
            engine.load("one two three")
            engine.play()
            assert finished.wait(timeout=5.0)
        finally:
            engine.close()
        assert engine.current_index == 0

    def test_failing_observer_stops_at_current_word(self, sample_text):
        stopped = threading.Event()
        seen = []

        def _observer(snapshot):
            seen.append(snapshot.current_index)
            if snapshot.current_index == 1 and snapshot.is_playing:
                stopped.set()
                raise BrokenPipeError()

        engine = PlaybackEngine(words_per_minute=1000, on_change=_observer)
        try:
            engine.load(sample_text)
            engine.play()
            assert stopped.wait(timeout=5.0)
            deadline = time.monotonic() + 5.0
            while engine.is_playing and time.monotonic() < deadline:
                time.sleep(0.01)
            assert not engine.is_playing
            assert engine.current_index == 1
            assert seen == [0, 0, 1]
        finally:
            engine.on_change = None
            engine.close()
