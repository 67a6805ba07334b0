"""Command-line interface: play a document in the terminal, one word at a time.

WHY: The quickest way to read a file with RSVP is straight from the
terminal. The CLI wires file loading and the playback engine (on a
real-time scheduler) behind one command, and doubles as a way to inspect
how a file was segmented.

HOW: argparse reads the input path (or ``-`` for stdin), speed, fixation
mode, and format override. Once the document is loaded a TerminalPlayer
is attached as the engine observer; every snapshot rewrites the current
terminal line with the word aligned on its fixation letter. On a
terminal, key presses are read in cbreak mode and dispatched through
the shared KeyMap until escape closes the document. Otherwise the main
thread waits until playback stops (or Ctrl-C). ``--paragraphs`` prints
the paragraph list and exits without playing.

RULES:
- Positional argument: input file path, or "-" for stdin
- --format overrides the extension-derived format (stdin defaults to plain)
- The fixation letter is drawn at a fixed column (red + bold when colored)
- Status messages and errors go to stderr; words go to stdout
- Keys are read only when stdin and stdout are both terminals, the text
  did not come from stdin, and --no-keys is not given
- Loader/empty-content errors exit with code 1; Ctrl-C exits with 130
- --verbose enables DEBUG logging
"""

from __future__ import annotations

import argparse
import logging
import os
import select
import sys
import threading
from typing import List, Optional, TextIO, Tuple

from rsvp_reader.config import DEFAULT_ORP_MODE, DEFAULT_WPM, MAX_WPM, MIN_WPM
from rsvp_reader.controls import KeyMap
from rsvp_reader.core.engine import PlaybackEngine
from rsvp_reader.core.ir import ReaderSnapshot
from rsvp_reader.core.normalizer import EmptyContent, SourceFormat
from rsvp_reader.core.orp import OrpMode
from rsvp_reader.ingest.loader import LoadedSource, LoaderError, load_source

logger = logging.getLogger(__name__)

# Column (0-based) where the fixation letter is drawn.
PIVOT_COLUMN = 12

_HIGHLIGHT = "\x1b[1;31m"
_RESET = "\x1b[0m"
_CLEAR_LINE = "\r\x1b[2K"

KEYS_HELP = (
    "Keys: space play/pause, left/right skip, alt+left/right paragraph, "
    "ctrl+left restart, up/down speed, esc quit."
)

Key = Tuple[str, Tuple[str, ...]]

# Terminal input sequences → (key, modifiers). Terminals never see the
# macOS command key, so ctrl stands in for it.
KEY_SEQUENCES = {
    " ": ("space", ()),
    "\x1b": ("escape", ()),
    "\x1b[A": ("up", ()),
    "\x1b[B": ("down", ()),
    "\x1b[C": ("right", ()),
    "\x1b[D": ("left", ()),
    "\x1bOA": ("up", ()),
    "\x1bOB": ("down", ()),
    "\x1bOC": ("right", ()),
    "\x1bOD": ("left", ()),
    "\x1b[1;3C": ("right", ("option",)),
    "\x1b[1;3D": ("left", ("option",)),
    "\x1bf": ("right", ("option",)),
    "\x1bb": ("left", ("option",)),
    "\x1b[1;5C": ("right", ("command",)),
    "\x1b[1;5D": ("left", ("command",)),
}


def decode_key(data: str) -> Optional[Key]:
    """Map one read from a cbreak terminal to a (key, modifiers) pair."""
    return KEY_SEQUENCES.get(data)


class TerminalKeys:
    """Key presses from a terminal held in cbreak mode.

    RULES:
    - Use as a context manager; the terminal settings are restored on exit
    - read() returns None when nothing arrives within the timeout or the
      input is not a known key
    - POSIX only (termios)
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream if stream is not None else sys.stdin
        self._saved = None

    def __enter__(self) -> "TerminalKeys":
        import termios
        import tty

        fd = self.stream.fileno()
        self._saved = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        return self

    def __exit__(self, *exc_info) -> None:
        import termios

        if self._saved is not None:
            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._saved)
            self._saved = None

    def read(self, timeout: float) -> Optional[Key]:
        fd = self.stream.fileno()
        ready, _, _ = select.select([fd], [], [], timeout)
        if not ready:
            return None
        data = os.read(fd, 32).decode("utf-8", errors="ignore")
        key = decode_key(data)
        if key is None:
            logger.debug("Ignoring terminal input %r", data)
        return key


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def render_word(snapshot: ReaderSnapshot, color: bool = True, pivot: int = PIVOT_COLUMN) -> str:
    """Lay out the current word so its fixation letter sits at ``pivot``."""
    prefix, fixation, suffix = snapshot.split
    padding = " " * max(0, pivot - len(prefix))
    if color and fixation:
        fixation = "{}{}{}".format(_HIGHLIGHT, fixation, _RESET)
    return "{}{}{}{}".format(padding, prefix, fixation, suffix)


def render_status(snapshot: ReaderSnapshot) -> str:
    """One-line status: speed, paragraph, word position, percent."""
    paragraph_total = len(snapshot.paragraphs)
    return "{wpm} WPM  ¶ {para}/{paras}  {pos}/{total}  {pct:.0f}%".format(
        wpm=snapshot.words_per_minute,
        para=snapshot.current_paragraph_index + 1 if paragraph_total else 0,
        paras=paragraph_total,
        pos=snapshot.current_index + 1 if snapshot.word_count else 0,
        total=snapshot.word_count,
        pct=snapshot.progress * 100,
    )


class TerminalPlayer:
    """Engine observer that redraws one terminal line per snapshot.

    RULES:
    - stopped is set whenever a snapshot reports is_playing=False
    - show_status appends the status line after the word
    """

    def __init__(
        self,
        out: Optional[TextIO] = None,
        color: Optional[bool] = None,
        show_status: bool = True,
    ) -> None:
        self.out = out if out is not None else sys.stdout
        if color is None:
            color = _is_tty(self.out)
        self.color = color
        self.show_status = show_status
        self.stopped = threading.Event()
        self.stopped.set()

    def __call__(self, snapshot: ReaderSnapshot) -> None:
        line = render_word(snapshot, color=self.color)
        if self.show_status:
            line = "{:<40}  {}".format(line, render_status(snapshot))
        self.out.write(_CLEAR_LINE + line if self.color else line + "\n")
        self.out.flush()

        if snapshot.is_playing:
            self.stopped.clear()
        else:
            self.stopped.set()

    def play_to_end(self, engine: PlaybackEngine, poll_interval: float = 0.1) -> None:
        """Start playback and block until the engine pauses."""
        self.stopped.clear()
        engine.play()
        if not engine.is_playing:
            self.stopped.set()
        while not self.stopped.wait(poll_interval):
            # A failed redraw pauses the engine without a final snapshot.
            if not engine.is_playing:
                break
        self._end_line()

    def interact(
        self,
        engine: PlaybackEngine,
        keys,
        keymap: Optional[KeyMap] = None,
        poll_interval: float = 0.1,
    ) -> None:
        """Start playback and dispatch key presses until the document is closed.

        ``keys`` is anything with ``read(timeout) -> (key, modifiers) | None``,
        usually a TerminalKeys.
        """
        keymap = keymap if keymap is not None else KeyMap()
        engine.play()
        while engine.has_content:
            key = keys.read(poll_interval)
            if key is None:
                continue
            name, modifiers = key
            if not keymap.handle(engine, name, modifiers):
                logger.debug("No action bound to %s", name)
        self._end_line()

    def _end_line(self) -> None:
        if self.color:
            self.out.write("\n")
            self.out.flush()


def _read_input(path: str, format_override: Optional[str]) -> LoadedSource:
    if path == "-":
        text = sys.stdin.read()
        if not text.strip():
            raise EmptyContent("No text received on stdin.")
        return LoadedSource(
            text=text,
            source_format=SourceFormat.parse(format_override or SourceFormat.PLAIN),
            filename="<stdin>",
        )

    source = load_source(path)
    if format_override:
        source.source_format = SourceFormat.parse(format_override)
    return source


def _print_paragraphs(engine: PlaybackEngine, out: TextIO) -> None:
    for paragraph in engine.paragraphs:
        out.write("¶ {:<4} [{}-{})  {}\n".format(
            paragraph.id, paragraph.start, paragraph.end, paragraph.preview,
        ))
    out.flush()


def _is_tty(stream) -> bool:
    return hasattr(stream, "isatty") and stream.isatty()


def _wpm(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("WPM must be an integer, got '{}'".format(value))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - Positional: input_file (path or "-")
    - Optional: --wpm, --mode, --format, --start-word, --paragraphs,
      --no-color, --no-keys, --verbose
    """
    parser = argparse.ArgumentParser(
        prog="rsvp_reader",
        description="Read a .txt, .md, or .pdf file one word at a time "
                    "with a highlighted fixation letter.",
    )

    parser.add_argument(
        "input_file",
        help="Path to the file to read, or '-' to read text from stdin.",
    )

    parser.add_argument(
        "--wpm",
        type=_wpm,
        default=DEFAULT_WPM,
        help="Reading speed in words per minute, {}-{} (default: %(default)s).".format(MIN_WPM, MAX_WPM),
    )

    parser.add_argument(
        "--mode",
        default=DEFAULT_ORP_MODE,
        choices=[m.value for m in OrpMode],
        help="Fixation letter mode (default: %(default)s).",
    )

    parser.add_argument(
        "--format",
        default=None,
        choices=[f.value for f in SourceFormat],
        help="Override the format inferred from the file extension.",
    )

    parser.add_argument(
        "--start-word",
        type=int,
        default=0,
        help="Word index to start reading from (default: %(default)s).",
    )

    parser.add_argument(
        "--paragraphs",
        action="store_true",
        help="List paragraphs with their word ranges and exit.",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI highlighting; print one word per line.",
    )

    parser.add_argument(
        "--no-keys",
        action="store_true",
        help="Do not read keyboard controls; play straight through to the end.",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        source = _read_input(args.input_file, args.format)
    except (LoaderError, EmptyContent) as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)
    logger.debug("Read %s as %s", source.filename, source.source_format.value)

    player = TerminalPlayer(color=False if args.no_color else None)
    engine = PlaybackEngine(words_per_minute=args.wpm, orp_mode=args.mode)

    try:
        engine.load(source.text, source.source_format)
    except EmptyContent as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    if args.paragraphs:
        _print_paragraphs(engine, sys.stdout)
        return

    _status("Reading {} ({} words, {} paragraphs) at {} WPM. Ctrl-C to stop.".format(
        source.filename, engine.word_count, len(engine.paragraphs), engine.words_per_minute,
    ))

    interactive = (
        not args.no_keys
        and args.input_file != "-"
        and _is_tty(sys.stdin)
        and _is_tty(sys.stdout)
    )
    if interactive:
        _status(KEYS_HELP)

    engine.go_to_word(args.start_word)
    engine.on_change = player
    try:
        if interactive:
            with TerminalKeys() as keys:
                player.interact(engine, keys)
        else:
            player.play_to_end(engine)
    except KeyboardInterrupt:
        engine.on_change = None
        engine.close()
        _status("\nStopped.")
        sys.exit(130)

    engine.on_change = None
    engine.close()
    _status("Done.")


if __name__ == "__main__":
    main()
