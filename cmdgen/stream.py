"""Reassembly of a streamed chat-completion response.

The relay forwards the upstream provider's server-sent-event stream
unmodified.  Each event record is a line of the form::

    data: {"choices": [{"delta": {"content": "..."}}]}

and the stream is closed by ``data: [DONE]``.  :class:`StreamAggregator`
consumes raw byte chunks in arrival order and concatenates the
``delta.content`` fragments into a single text.  Chunks carry no
boundary guarantees, so both the UTF-8 decoder and the current partial
line are carried over from one chunk to the next.

Malformed records are dropped silently: the upstream feed routinely
contains keep-alives and comments, and a bad record must never abort
an otherwise healthy stream.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, List, Optional

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)

EVENT_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def extract_delta(record: Any) -> Optional[str]:
    """Return ``choices[0].delta.content`` from a decoded record.

    :returns: The content fragment, or ``None`` when the record does not
      have that shape or the content is not a string.
    """
    if not isinstance(record, dict):
        return None
    choices = record.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if not isinstance(content, str):
        return None
    return content


class StreamAggregator:
    """Accumulates content fragments from a chunked event stream.

    Use :meth:`feed` for every chunk and :meth:`finish` exactly once at
    end of stream.  :func:`aggregate` wraps both for an async iterable.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""
        self._fragments: List[str] = []
        self._finished = False
        self.done = False
        self.dropped = 0

    @property
    def text(self) -> str:
        return "".join(self._fragments)

    def feed(self, chunk: bytes) -> None:
        """Consume the next raw chunk of the stream.

        :param chunk: Bytes as received; may end in the middle of a line
          or of a multi-byte character.
        :raises RuntimeError: If :meth:`finish` was already called.
        """
        if self._finished:
            raise RuntimeError("aggregator already finished")
        if not chunk:
            return
        decoded = self._pending + self._decoder.decode(chunk)
        lines = decoded.split("\n")
        # The last piece has no newline yet; keep it for the next chunk.
        self._pending = lines.pop()
        for line in lines:
            self._handle_line(line)

    def finish(self) -> str:
        """Flush the carried-over line and return the aggregated text.

        :returns: The concatenated content, possibly empty.
        :raises RuntimeError: If called more than once.
        """
        if self._finished:
            raise RuntimeError("aggregator already finished")
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        for line in tail.split("\n"):
            self._handle_line(line)
        self._finished = True
        if not self.done:
            logger.debug("Stream ended without a %s sentinel", DONE_SENTINEL)
        return self.text

    def _handle_line(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.startswith(EVENT_PREFIX):
            return
        payload = line[len(EVENT_PREFIX):].strip()
        if not payload:
            return
        if payload == DONE_SENTINEL:
            self.done = True
            return
        try:
            record = json.loads(payload)
        except (json.JSONDecodeError, RecursionError):
            self.dropped += 1
            logger.debug("Dropping malformed event record: %.80s", payload)
            return
        content = extract_delta(record)
        if content is None:
            self.dropped += 1
            return
        self._fragments.append(content)


async def aggregate(chunks: AsyncIterable[bytes]) -> str:
    """Consume ``chunks`` to the end and return the concatenated content.

    :raises TransportError: When the underlying stream fails mid-way.
      Whatever was accumulated up to that point is discarded.
    """
    aggregator = StreamAggregator()
    try:
        async for chunk in chunks:
            aggregator.feed(chunk)
    except (httpx.HTTPError, OSError) as exc:
        raise TransportError(str(exc) or exc.__class__.__name__) from exc
    text = aggregator.finish()
    logger.debug(
        "Aggregated %d characters (%d records dropped)", len(text), aggregator.dropped
    )
    return text
