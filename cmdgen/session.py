"""Interactive multi-round suggestion loop for ``generate`` mode.

The session is a small state machine::

    PRESENTING --execute k--> EXECUTED
    PRESENTING --quit-------> QUIT
    PRESENTING --more-------> FETCHING --new candidates--> PRESENTING
                                       --none / failure--> EXHAUSTED

A session only exists once the initial ``generate`` dispatch produced
at least one candidate (see :meth:`SuggestionSession.start`).  Input is
read only in ``PRESENTING``; while a follow-up fetch is in flight the
loop is suspended on it, so at most one dispatch is outstanding.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import click

from .dispatcher import RequestDispatcher
from .executor import run_command
from .models import Candidate, GenerateResult, Mode, PromptContext
from .validator import assess_command

logger = logging.getLogger(__name__)

T = TypeVar("T")
Ask = Callable[[str], Awaitable[str]]
Confirm = Callable[[str], Awaitable[bool]]

MORE_CHOICES = ("m", "more")
QUIT_CHOICES = ("", "q", "quit", "exit")


class SessionState(str, enum.Enum):
    PRESENTING = "presenting"
    FETCHING = "fetching"
    EXECUTED = "executed"
    EXHAUSTED = "exhausted"
    QUIT = "quit"


TERMINAL_STATES = (SessionState.EXECUTED, SessionState.EXHAUSTED, SessionState.QUIT)


async def run_off_loop(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking call in a daemon thread and await its result.

    The event loop, and with it the in-process relay, keeps running
    while ``func`` blocks.  The thread is a daemon so an interrupted
    prompt never holds the process open waiting for a line of input.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(value: Any, failed: bool) -> None:
        if future.done():
            return
        if failed:
            future.set_exception(value)
        else:
            future.set_result(value)

    def worker() -> None:
        try:
            value, failed = func(*args, **kwargs), False
        except BaseException as exc:
            value, failed = exc, True
        if not loop.is_closed():
            loop.call_soon_threadsafe(settle, value, failed)

    threading.Thread(target=worker, name="cmdgen-blocking", daemon=True).start()
    return await future


async def ask_with_click(prompt: str) -> str:
    return await run_off_loop(click.prompt, prompt, default="", show_default=False)


async def confirm_with_click(message: str) -> bool:
    return await run_off_loop(click.confirm, message, default=False)


class SuggestionSession:
    """Holds the candidates shown so far and drives the choice loop.

    :param dispatcher: Used for follow-up ``generate`` requests.
    :param request: The user's original natural language request.
    :param context: Environment facts forwarded into the prompt.
    :param candidates: Candidates from the initial dispatch; must not be
      empty.
    :param ask: Coroutine function returning the user's raw choice.
    :param confirm: Coroutine function used to confirm risky commands.
    :param execute: Runs the chosen command and returns its exit status.
    :param safe_mode: Whether risky commands need confirmation.
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        request: str,
        context: PromptContext,
        candidates: List[Candidate],
        ask: Ask = ask_with_click,
        confirm: Confirm = confirm_with_click,
        execute: Callable[[str], int] = run_command,
        safe_mode: bool = True,
    ) -> None:
        if not candidates:
            raise ValueError("a session needs at least one candidate")
        self.dispatcher = dispatcher
        self.request = request
        self.context = context
        self.candidates: List[Candidate] = list(candidates)
        self.round = 1
        self.state = SessionState.PRESENTING
        self.ask = ask
        self.confirm = confirm
        self.execute = execute
        self.safe_mode = safe_mode
        self.executed: Optional[Candidate] = None
        self.exit_status: Optional[int] = None

    @classmethod
    async def start(
        cls,
        dispatcher: RequestDispatcher,
        request: str,
        context: PromptContext,
        **kwargs,
    ) -> Optional["SuggestionSession"]:
        """Run the initial dispatch and build a session from it.

        :returns: ``None`` when the dispatch failed or produced no
          candidates; no prompt is shown in that case.
        """
        result = await dispatcher.dispatch(Mode.GENERATE, request, context)
        if not isinstance(result, GenerateResult) or not result.commands:
            if isinstance(result, GenerateResult):
                click.echo("\nNo command suggestions were returned.")
            return None
        return cls(dispatcher, request, context, result.commands, **kwargs)

    @property
    def seen_commands(self) -> List[str]:
        return [candidate.command for candidate in self.candidates]

    def present(self) -> None:
        click.echo("\nSuggested commands:")
        for index, candidate in enumerate(self.candidates, start=1):
            click.echo(f"  {index}. {candidate.command}")
            if candidate.description:
                click.echo(f"     {candidate.description}")

    async def run(self) -> SessionState:
        """Loop until a terminal state is reached and return it."""
        while self.state not in TERMINAL_STATES:
            self.present()
            raw = await self.ask(
                f"\nSelect a command [1-{len(self.candidates)}], (m)ore or (q)uit"
            )
            await self.handle_choice(raw)
        logger.debug("Session ended in %s after %d round(s)", self.state.value, self.round)
        return self.state

    async def handle_choice(self, raw: str) -> SessionState:
        """Apply one user choice to the state machine."""
        if self.state is not SessionState.PRESENTING:
            raise RuntimeError(f"cannot accept input while {self.state.value}")
        choice = (raw or "").strip().lower()
        if choice in QUIT_CHOICES:
            self.state = SessionState.QUIT
        elif choice in MORE_CHOICES:
            await self.fetch_more()
        elif choice.isdigit() and 1 <= int(choice) <= len(self.candidates):
            await self.choose(self.candidates[int(choice) - 1])
        else:
            click.echo(f"Invalid choice: {raw!r}")
        return self.state

    async def choose(self, candidate: Candidate) -> None:
        assessment = assess_command(candidate.command)
        if not assessment.ok and self.safe_mode:
            click.echo(f"\nWarning: this command {assessment.summary}.")
            if not await self.confirm("Run it anyway?"):
                click.echo("Command not executed.")
                return
        self.executed = candidate
        self.exit_status = await run_off_loop(self.execute, candidate.command)
        self.state = SessionState.EXECUTED

    async def fetch_more(self) -> None:
        """Request further candidates, appending whatever comes back."""
        self.state = SessionState.FETCHING
        click.echo("\nGetting more suggestions...")
        result = await self.dispatcher.dispatch(
            Mode.GENERATE, self.request, self.context, self.seen_commands
        )
        if result is None:
            click.echo("\nCouldn't fetch more suggestions.")
            self.state = SessionState.EXHAUSTED
            return
        if not isinstance(result, GenerateResult) or not result.commands:
            click.echo("\nNo new suggestions were returned.")
            self.state = SessionState.EXHAUSTED
            return
        self.candidates.extend(result.commands)
        self.round += 1
        self.state = SessionState.PRESENTING
