"""Tests for system prompt construction."""

import pytest

from cmdgen.models import Mode, PromptContext
from cmdgen.prompts import build_system_prompt

CONTEXT = PromptContext(os="macos", os_version="14.5", shell="zsh", lang="de")


@pytest.mark.parametrize(
    "mode, key",
    [(Mode.GENERATE, '"commands"'), (Mode.EXPLAIN, '"explanation"'), (Mode.ERROR, '"solution"')],
)
def test_prompt_describes_expected_shape(mode, key):
    prompt = build_system_prompt(mode, CONTEXT)
    assert key in prompt
    assert "macos 14.5" in prompt
    assert "zsh" in prompt
    assert "'de'" in prompt


def test_existing_commands_only_affect_generate():
    generate = build_system_prompt(Mode.GENERATE, CONTEXT, ["ls", "ls -la"])
    explain = build_system_prompt(Mode.EXPLAIN, CONTEXT, ["ls", "ls -la"])
    assert "- ls\n- ls -la" in generate
    assert "ls -la" not in explain


def test_first_generate_prompt_has_no_exclusions():
    assert "already seen" not in build_system_prompt(Mode.GENERATE, CONTEXT)
