"""Core reading engine: normalization, segmentation, fixation, playback.

WHY: The core package is the non-visual heart of the reader. Every
presentation layer (terminal player, HTTP sessions) drives the same
engine and reads the same snapshot, so the invariants live here once.

HOW: normalizer.py cleans raw text per source format, segmenter.py
builds the paragraph/word Document, orp.py picks the fixation letter,
scheduler.py provides tick sources, and engine.py is the playback
state machine that ties them together. ir.py holds the dataclasses.

RULES:
- No file, device, or network I/O in this package
- IR dataclasses are the contract between core and presentation
- Rule lists in normalizer.py are ordered; the order is part of the contract
"""
