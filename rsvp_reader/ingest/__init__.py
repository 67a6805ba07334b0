"""File ingestion: turn .txt, .md, and .pdf files into text plus a format tag.

WHY: Ingestion failures (unsupported extension, undecodable bytes, PDFs
without a text layer) belong outside the core engine, which only ever
sees text and a format tag.

HOW: loader.py exposes load_source() for paths and load_bytes() for
uploads. Both return a LoadedSource for PlaybackEngine.load().
"""
