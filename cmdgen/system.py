"""Detection of the user's operating system and shell.

The values are only used as defaults for the ``--os``, ``--os-version``
and ``--shell`` options and end up verbatim in the system prompt.
"""

from __future__ import annotations

import os
import platform
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class SystemInfo:
    os: str
    os_version: str
    shell: str


def _shell_name(default: str) -> str:
    shell = os.environ.get("SHELL")
    return Path(shell).name if shell else default


def _linux_pretty_name(os_release: Path = Path("/etc/os-release")) -> Optional[str]:
    try:
        text = os_release.read_text(encoding="utf-8")
    except OSError:
        return None
    for line in text.splitlines():
        if line.startswith("PRETTY_NAME="):
            return line.split("=", 1)[1].strip().strip('"') or None
    return None


def _macos_version() -> str:
    try:
        proc = subprocess.run(
            ["sw_vers", "-productVersion"],
            capture_output=True,
            text=True,
            check=True,
        )
        return proc.stdout.strip() or platform.release()
    except (OSError, subprocess.CalledProcessError):
        return platform.mac_ver()[0] or platform.release()


def detect_system() -> SystemInfo:
    """Return the detected OS name, version and shell."""
    if sys.platform == "win32":
        shell = "PowerShell" if os.environ.get("PSModulePath") else "CMD"
        return SystemInfo("windows", platform.release(), shell)
    if sys.platform == "darwin":
        return SystemInfo("macos", _macos_version(), _shell_name("zsh"))
    return SystemInfo(
        "linux",
        _linux_pretty_name() or platform.release(),
        _shell_name("bash"),
    )
