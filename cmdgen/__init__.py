"""Top-level package for cmdgen.

``cmdgen`` turns a natural language request into candidate shell
commands, explains a command, or diagnoses an error message.  Requests
go through a small relay that runs inside the same process and forwards
them to an OpenAI-compatible completion service.  The relay lives in
``server.py`` and ``relay.py``.  The streamed reply is reassembled by
``stream.py``, validated by ``parser.py`` and, for command suggestions,
presented by the interactive loop in ``session.py``.

When this package is installed via pip you can invoke the CLI from
your shell using the ``cmdgen`` entry point.  Alternatively you can run
``python -m cmdgen`` for local development.
"""

__version__ = "1.0.0"

__all__ = [
    "cli",
    "dispatcher",
    "parser",
    "relay",
    "server",
    "session",
    "stream",
]
