"""Execution of a chosen command in the user's shell."""

from __future__ import annotations

import logging
import os
import subprocess
import sys

import click

logger = logging.getLogger(__name__)


def run_command(command: str) -> int:
    """Run ``command`` through the shell with inherited stdio.

    :returns: The command's exit status, or ``1`` if it could not be
      started at all.
    """
    click.echo(f"\n> {command}\n")
    executable = None
    if sys.platform != "win32":
        executable = os.environ.get("SHELL") or None
    try:
        proc = subprocess.run(command, shell=True, executable=executable)
    except OSError as exc:
        logger.debug("Failed to start %r", command, exc_info=True)
        click.echo(f"Failed to run command: {exc}", err=True)
        return 1
    if proc.returncode != 0:
        click.echo(f"\nCommand exited with status {proc.returncode}.", err=True)
    return proc.returncode
