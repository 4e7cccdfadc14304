"""Exception types raised by the cmdgen core.

Everything the orchestration engine raises derives from
:class:`CmdgenError`.  Only :class:`RelayStartupError` is allowed to
reach the command line layer as a fatal condition; the others are
caught at the dispatch boundary and turned into a printed message.
"""

import json


class CmdgenError(Exception):
    """Base class for cmdgen failures."""


class TransportError(CmdgenError):
    """Raised when the relay call fails or its stream breaks off."""


class ParseFailure(CmdgenError):
    """Raised when a response has no well-formed payload for its mode."""


class RelayStartupError(CmdgenError):
    """Raised when the local relay cannot be started."""


def error_message_from_body(status_code: int, body: bytes) -> str:
    """Extract a readable message from an error reply.

    Understands the ``{"error": {"message": ...}}`` shape used by the
    relay and by OpenAI-compatible providers, and FastAPI's
    ``{"detail": ...}``.
    """
    try:
        data = json.loads(body.decode("utf-8", errors="replace"))
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
        if isinstance(data.get("detail"), str):
            return data["detail"]
    return f"HTTP {status_code}"
