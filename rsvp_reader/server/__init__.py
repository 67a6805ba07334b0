"""HTTP API: reading sessions over FastAPI.

WHY: Remote front ends drive the same playback engine as the terminal
player. app.py defines the routes, models.py the pydantic schemas,
sessions.py the thread-safe in-memory session store.
"""
