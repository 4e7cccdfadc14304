"""System prompts sent ahead of the user's input.

Each mode gets its own instruction describing the exact JSON shape the
response parser expects.  Like the rest of the request payload, the
prompt is plain text; the environment facts are interpolated verbatim.
"""

from __future__ import annotations

from typing import Sequence

from .models import Mode, PromptContext

_JSON_ONLY = (
    "Respond with a single JSON object and nothing else: no Markdown, "
    "no code fences, no commentary."
)

_GENERATE = (
    "You are a command line expert. Translate the user's request into "
    "shell commands for {os} {os_version} using {shell}. Suggest up to "
    "three alternatives, best first. Answer in the '{lang}' language. "
    'Use the shape {{"commands": [{{"command": "...", "description": '
    '"..."}}]}}. Every command must run as-is in {shell}.'
)

_EXPLAIN = (
    "You are a command line expert on {os} {os_version} using {shell}. "
    "Explain what the user's command does, part by part, in the "
    "'{lang}' language. "
    'Use the shape {{"explanation": "..."}}.'
)

_ERROR = (
    "You are a troubleshooting expert on {os} {os_version} using {shell}. "
    "Diagnose the user's error message in the '{lang}' language. "
    'Use the shape {{"cause": "...", "explanation": "...", '
    '"solution": ["step 1", "step 2"]}}.'
)

_TEMPLATES = {
    Mode.GENERATE: _GENERATE,
    Mode.EXPLAIN: _EXPLAIN,
    Mode.ERROR: _ERROR,
}


def build_system_prompt(
    mode: Mode,
    context: PromptContext,
    existing_commands: Sequence[str] = (),
) -> str:
    """Return the system instruction for ``mode``.

    ``existing_commands`` is only used by ``generate`` follow-up calls;
    the model is asked not to repeat any of them.
    """
    template = _TEMPLATES[Mode(mode)]
    prompt = template.format(
        os=context.os,
        os_version=context.os_version,
        shell=context.shell,
        lang=context.lang,
    )
    if Mode(mode) is Mode.GENERATE and existing_commands:
        listed = "\n".join(f"- {cmd}" for cmd in existing_commands)
        prompt += (
            "\nThe user has already seen these commands; suggest different "
            f"ones:\n{listed}"
        )
    return f"{prompt}\n{_JSON_ONLY}"
