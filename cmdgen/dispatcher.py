"""End-to-end request orchestration.

A dispatch builds the two-message payload, posts it to the relay as a
streaming request, feeds the streamed body through
:func:`cmdgen.stream.aggregate` and hands the resulting text to
:func:`cmdgen.parser.parse`.  Every failure along the way is reported
exactly once through the ``report`` callable and turned into a ``None``
result; callers treat ``None`` as "the operation did not complete".

There are no retries here.  One call to :meth:`RequestDispatcher.dispatch`
is exactly one outbound request.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Sequence

import click
import httpx

from .errors import ParseFailure, TransportError, error_message_from_body
from .models import Mode, ParsedResult, PromptContext
from .parser import parse
from .prompts import build_system_prompt
from .stream import aggregate

logger = logging.getLogger(__name__)

PROXY_PATH = "/api/proxy"


def _report_to_stderr(message: str) -> None:
    click.echo(f"\nError: {message}", err=True)


def build_payload(
    mode: Mode,
    user_input: str,
    context: PromptContext,
    existing_commands: Sequence[str] = (),
) -> Dict[str, Any]:
    """Return the JSON body sent to the relay."""
    return {
        "messages": [
            {
                "role": "system",
                "content": build_system_prompt(mode, context, existing_commands),
            },
            {"role": "user", "content": user_input},
        ]
    }


class RequestDispatcher:
    """Sends requests through the local relay and returns parsed results.

    :param client: HTTP client used for the relay call.  The caller owns
      it and is responsible for closing it.
    :param relay_url: Base URL of the relay, e.g. ``http://127.0.0.1:3003``.
    :param report: Callable receiving the single user-facing error line
      of a failed dispatch.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        relay_url: str,
        report: Callable[[str], None] = _report_to_stderr,
    ) -> None:
        self.client = client
        self.relay_url = relay_url.rstrip("/")
        self.report = report

    async def _fetch_text(self, payload: Dict[str, Any]) -> str:
        url = f"{self.relay_url}{PROXY_PATH}"
        try:
            async with self.client.stream(
                "POST",
                url,
                json=payload,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise TransportError(error_message_from_body(response.status_code, body))
                return await aggregate(response.aiter_bytes())
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

    async def request(
        self,
        mode: Mode,
        user_input: str,
        context: PromptContext,
        existing_commands: Sequence[str] = (),
    ) -> ParsedResult:
        """Run one dispatch, raising on failure.

        :raises TransportError: When the relay call or its stream fails.
        :raises ParseFailure: When the response has no usable payload.
        """
        mode = Mode(mode)
        payload = build_payload(mode, user_input, context, existing_commands)
        logger.debug("Dispatching %s request (%d prior commands)", mode.value, len(existing_commands))
        text = await self._fetch_text(payload)
        outcome = parse(mode, text)
        if not outcome.ok:
            logger.debug("Unparseable %s response: %.200r", mode.value, text)
            raise ParseFailure(f"Parsing failed: the {outcome.reason}")
        return outcome.value

    async def dispatch(
        self,
        mode: Mode,
        user_input: str,
        context: PromptContext,
        existing_commands: Sequence[str] = (),
    ) -> Optional[ParsedResult]:
        """Run one dispatch; report any failure and return ``None`` for it."""
        try:
            return await self.request(mode, user_input, context, existing_commands)
        except (TransportError, ParseFailure) as exc:
            self.report(str(exc))
            return None
