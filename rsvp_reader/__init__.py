"""RSVP Reader — one word at a time, with a highlighted fixation letter.

WHY: Rapid serial visual presentation removes eye movement from reading.
Showing each word at a fixed cadence, anchored on an optimal
recognition point, lets readers move faster than line-by-line reading.

HOW: Three-stage pipeline: ingest (file loader), prepare (normalize
and segment into a Document), play (PlaybackEngine driven by a tick
scheduler). The terminal CLI and the HTTP API are thin presentation
layers over the same engine.

RULES:
- The core never performs I/O; loaders hand it text plus a format tag
- All presentation layers read ReaderSnapshot, never engine internals
- Navigation and speed changes clamp instead of raising
"""

__version__ = "0.1.0"
