"""Package entry point for ``python -m rsvp_reader``.

WHY: Users run the reader as ``python -m rsvp_reader book.md`` to play a
document in the terminal, or ``python -m rsvp_reader --serve`` to start
the HTTP API.

HOW: Checks sys.argv for the ``--serve`` flag. If present, starts the
API server with uvicorn. Otherwise, delegates to the CLI's main().

RULES:
- This file must exist for ``python -m rsvp_reader`` to work
- ``--serve`` starts the HTTP API
- Without ``--serve``, falls through to the CLI
"""

import sys

if __name__ == "__main__":
    if "--serve" in sys.argv:
        from rsvp_reader.server.app import run_api
        run_api()
    else:
        from rsvp_reader.cli import main
        main()
