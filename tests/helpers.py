"""Shared helpers for the cmdgen test suite."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Iterable, List, Optional, Sequence

from cmdgen.models import PromptContext

CONTEXT = PromptContext(os="linux", os_version="Ubuntu 24.04", shell="bash")


def record(content: Optional[str]) -> str:
    """Return one SSE line carrying ``content`` as a delta."""
    payload = {"choices": [{"delta": {"content": content}}]}
    return "data: " + json.dumps(payload, ensure_ascii=False) + "\n"


def sse_body(*contents: str, done: bool = True) -> bytes:
    lines = [record(content) for content in contents]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def split_every(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


async def chunks_of(parts: Iterable[bytes]) -> AsyncIterator[bytes]:
    for part in parts:
        yield part


class FakeDispatcher:
    """Stands in for RequestDispatcher, returning scripted results."""

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.calls: List[tuple] = []

    async def dispatch(self, mode, user_input, context, existing_commands: Sequence[str] = ()):
        self.calls.append((mode, user_input, context, list(existing_commands)))
        return self.results.pop(0)


def scripted(*answers: str):
    """Return an ``ask`` coroutine function replaying ``answers``."""
    queue = list(answers)
    prompts: List[str] = []

    async def ask(prompt: str) -> str:
        prompts.append(prompt)
        return queue.pop(0)

    ask.prompts = prompts
    return ask
