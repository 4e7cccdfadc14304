"""Command line interface for cmdgen.

This module defines the ``cmdgen`` command using the ``click`` library.
It exposes several subcommands:

``cmdgen generate <request>`` (alias ``g``)
    Suggest shell commands for a natural language request and let the
    user run one, ask for more, or quit.

``cmdgen analyze <command>`` (alias ``a``)
    Explain what a command does.

``cmdgen error <message>`` (alias ``e``)
    Diagnose an error message, optionally with ``--context``.

``cmdgen configure``
    Store upstream provider settings in ``~/.cmdgen/config.yaml``.

``cmdgen serve``
    Run the relay on its own in the foreground.

The three mode commands start the relay in-process, perform their work
and exit with status 0, even when the request fails; the failure is
printed instead.  Only a relay that cannot start exits with status 1.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import click
import httpx
import uvicorn

from . import __version__
from .config import load_config, read_config_file, relay_url, save_config
from .dispatcher import RequestDispatcher
from .errors import RelayStartupError
from .logging_setup import setup_logging
from .models import ErrorResult, ExplainResult, Mode, PromptContext
from .relay import RelayServer
from .server import create_app
from .session import SuggestionSession
from .system import detect_system

BANNER = """\
cmdgen {version} - shell commands from plain language

Usage: cmdgen <command> "<input>" [options]

  cmdgen generate "find all files larger than 100MB"
  cmdgen analyze "tar -xzvf archive.tar.gz"
  cmdgen error "permission denied (publickey)" --context "git push"

Run 'cmdgen --help' for all commands and options.
"""


class AliasedGroup(click.Group):
    """A click group that also resolves short command aliases."""

    aliases = {"g": "generate", "a": "analyze", "e": "error"}

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        return super().get_command(ctx, self.aliases.get(cmd_name, cmd_name))

    def resolve_command(self, ctx: click.Context, args):
        _, cmd, args = super().resolve_command(ctx, args)
        return cmd.name if cmd else None, cmd, args


def environment_options(func: Callable) -> Callable:
    """Add the options describing the user's environment."""
    func = click.option("--lang", default="en", show_default=True, help="Language of the answer.")(func)
    func = click.option("--shell", default=None, help="Target shell (detected by default).")(func)
    func = click.option("--os-version", "os_version", default=None, help="OS version (detected by default).")(func)
    func = click.option("--os", "os_name", default=None, help="Operating system (detected by default).")(func)
    return func


def _prompt_context(
    os_name: Optional[str], os_version: Optional[str], shell: Optional[str], lang: str
) -> PromptContext:
    detected = None
    if not (os_name and os_version and shell):
        detected = detect_system()
    return PromptContext(
        os=os_name or detected.os,
        os_version=os_version or detected.os_version,
        shell=shell or detected.shell,
        lang=lang,
    )


@asynccontextmanager
async def open_dispatcher(config: Dict[str, Any]) -> AsyncIterator[RequestDispatcher]:
    """Start the relay and yield a dispatcher talking to it.

    The relay is left running when the context exits; it ends with the
    event loop.  Its upstream client is closed on the way out.
    """
    relay_cfg = config.get("relay", {})
    relay = RelayServer(
        create_app(config),
        host=relay_cfg.get("host", "127.0.0.1"),
        port=int(relay_cfg.get("port", 3003)),
    )
    await relay.start()
    timeout = float(config.get("client", {}).get("timeout") or 180.0)
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), trust_env=False) as client:
            yield RequestDispatcher(client, relay.url)
    finally:
        await relay.close_upstream()


def _run(ctx: click.Context, work: Callable[[RequestDispatcher], Awaitable[None]]) -> None:
    config = ctx.obj["config"]

    async def main() -> None:
        async with open_dispatcher(config) as dispatcher:
            await work(dispatcher)

    try:
        asyncio.run(main())
    except RelayStartupError as exc:
        click.echo(f"\nA critical error occurred during startup: {exc}", err=True)
        ctx.exit(1)


def format_error_result(result: ErrorResult) -> str:
    """Render a diagnosis as the cause, explanation and solution steps.

    :param result: Parsed ``error`` mode result.
    :returns: Text ready for :func:`click.echo`.
    """
    lines = [
        f"\nProbable Cause: {result.cause}",
        f"\nExplanation: {result.explanation}",
        "\nSolution:",
    ]
    lines.extend(f"  - {step}" for step in result.solution)
    return "\n".join(lines)


@click.group(
    cls=AliasedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(__version__, "-v", "--version", prog_name="cmdgen")
@click.option("--verbose", is_flag=True, help="Show debug logging on stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """cmdgen - turn plain language into shell commands."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config()
    if ctx.invoked_subcommand is None:
        click.echo(BANNER.format(version=__version__))


@cli.command(name="generate")
@click.argument("request", nargs=-1, required=True)
@environment_options
@click.pass_context
def generate(ctx: click.Context, request, os_name, os_version, shell, lang) -> None:
    """Generate commands for REQUEST and pick one to run."""
    request_text = " ".join(request).strip()
    context = _prompt_context(os_name, os_version, shell, lang)
    safe_mode = bool(ctx.obj["config"].get("safe_mode", True))

    async def work(dispatcher: RequestDispatcher) -> None:
        session = await SuggestionSession.start(
            dispatcher, request_text, context, safe_mode=safe_mode
        )
        if session is not None:
            await session.run()

    _run(ctx, work)


@cli.command(name="analyze")
@click.argument("command", nargs=-1, required=True)
@environment_options
@click.pass_context
def analyze(ctx: click.Context, command, os_name, os_version, shell, lang) -> None:
    """Explain what COMMAND does."""
    command_text = " ".join(command).strip()
    context = _prompt_context(os_name, os_version, shell, lang)

    async def work(dispatcher: RequestDispatcher) -> None:
        result = await dispatcher.dispatch(Mode.EXPLAIN, command_text, context)
        if isinstance(result, ExplainResult):
            click.echo(f"\n{result.explanation}")

    _run(ctx, work)


@cli.command(name="error")
@click.argument("message", nargs=-1, required=True)
@click.option("--context", "extra_context", default=None, help="What you were doing when the error occurred.")
@environment_options
@click.pass_context
def error_cmd(ctx: click.Context, message, extra_context, os_name, os_version, shell, lang) -> None:
    """Diagnose an error MESSAGE."""
    user_input = f"Error Message:\n{' '.join(message).strip()}"
    if extra_context:
        user_input += f"\n\nContext:\n{extra_context}"
    context = _prompt_context(os_name, os_version, shell, lang)

    async def work(dispatcher: RequestDispatcher) -> None:
        result = await dispatcher.dispatch(Mode.ERROR, user_input, context)
        if isinstance(result, ErrorResult):
            click.echo(format_error_result(result))

    _run(ctx, work)


@cli.command()
@click.option("--api-key", default=None, help="API key for the upstream provider.")
@click.option("--base-url", default=None, help="Base URL of an OpenAI-compatible API.")
@click.option("--model", default=None, help="Model name sent upstream.")
@click.option("--safe-mode/--no-safe-mode", default=None, help="Confirm risky commands before running them.")
@click.pass_context
def configure(ctx: click.Context, api_key, base_url, model, safe_mode) -> None:
    """Store upstream provider settings."""
    config = read_config_file()
    upstream = config.setdefault("upstream", {})
    for key, value in (("api_key", api_key), ("base_url", base_url), ("model", model)):
        if value is not None:
            upstream[key] = value
    if safe_mode is not None:
        config["safe_mode"] = safe_mode
    path = save_config(config)
    click.echo(f"Configuration updated in {path}. Model={upstream.get('model')}")


@cli.command(name="serve")
@click.option("--host", default=None, help="Bind address (defaults to the configured relay host).")
@click.option("--port", default=None, type=int, help="Port (defaults to the configured relay port).")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Run the relay in the foreground."""
    config = ctx.obj["config"]
    relay_cfg = config.get("relay", {})
    host = host or relay_cfg.get("host", "127.0.0.1")
    port = port or int(relay_cfg.get("port", 3003))
    click.echo(f"Relay running on {relay_url({'relay': {'host': host, 'port': port}})}")
    uvicorn.run(create_app(config), host=host, port=port, log_level="warning")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
