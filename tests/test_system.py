"""Tests for environment detection and command execution."""

from __future__ import annotations

import sys

import pytest

from cmdgen import system
from cmdgen.executor import run_command


def test_linux_pretty_name(tmp_path):
    os_release = tmp_path / "os-release"
    os_release.write_text('NAME="Debian GNU/Linux"\nPRETTY_NAME="Debian GNU/Linux 12 (bookworm)"\n')
    assert system._linux_pretty_name(os_release) == "Debian GNU/Linux 12 (bookworm)"


def test_linux_pretty_name_missing_file(tmp_path):
    assert system._linux_pretty_name(tmp_path / "absent") is None


def test_detect_linux_uses_shell_basename(monkeypatch):
    monkeypatch.setattr(system.sys, "platform", "linux")
    monkeypatch.setattr(system, "_linux_pretty_name", lambda: "Arch Linux")
    monkeypatch.setenv("SHELL", "/usr/bin/fish")
    assert system.detect_system() == system.SystemInfo("linux", "Arch Linux", "fish")


def test_detect_windows_shell(monkeypatch):
    monkeypatch.setattr(system.sys, "platform", "win32")
    monkeypatch.setenv("PSModulePath", "C:\\modules")
    assert system.detect_system().shell == "PowerShell"
    monkeypatch.delenv("PSModulePath")
    assert system.detect_system().shell == "CMD"


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell syntax")
def test_run_command_returns_exit_status(monkeypatch):
    monkeypatch.delenv("SHELL", raising=False)
    assert run_command("true") == 0
    assert run_command("exit 3") == 3
