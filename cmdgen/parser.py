"""Parsing and validation of aggregated model responses.

Models are asked to answer with a bare JSON object, but in practice the
object often arrives wrapped in Markdown fences or preceded by a short
sentence.  :func:`parse` therefore scans the text for JSON values that
carry the container expected for the mode and validates them field by
field; the first one that validates wins.

The parser never raises.  Every problem, from undecodable text to a
candidate without a command, is reported as a failed
:class:`ParseOutcome` with a human readable reason.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple

from .models import (
    Candidate,
    ErrorResult,
    ExplainResult,
    GenerateResult,
    Mode,
    ParsedResult,
)

EMPTY_OR_MALFORMED = "response was empty or malformed"


class _Invalid(Exception):
    """Internal signal for a payload that fails validation."""


@dataclass(frozen=True)
class ParseOutcome:
    """Tagged result of :func:`parse`.

    Exactly one of ``value`` and ``reason`` is set.
    """

    value: Optional[ParsedResult] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, value: ParsedResult) -> "ParseOutcome":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "ParseOutcome":
        return cls(reason=reason)


# Deeply nested input exhausts the decoder's recursion budget; such a
# value is treated like any other undecodable one.
_DECODE_ERRORS = (json.JSONDecodeError, RecursionError)


def _scan(text: str) -> Iterator[Tuple[Any, bool]]:
    """Yield ``(value, is_whole_text)`` for every embedded JSON value."""
    stripped = text.strip()
    try:
        yield json.loads(stripped), True
        return
    except _DECODE_ERRORS:
        pass
    decoder = json.JSONDecoder()
    index = 0
    length = len(stripped)
    while index < length:
        if stripped[index] not in "{[":
            index += 1
            continue
        try:
            value, end = decoder.raw_decode(stripped, index)
        except _DECODE_ERRORS:
            index += 1
            continue
        yield value, False
        index = end


def iter_json_values(text: str) -> Iterator[Any]:
    """Yield every JSON object or array embedded in ``text``.

    The whole text is tried first.  After that each ``{`` or ``[`` is
    treated as a possible start of a value; positions inside a value
    that already decoded are skipped.
    """
    for value, _ in _scan(text):
        yield value


def _container_rank(mode: Mode, value: Any, whole: bool) -> Optional[int]:
    """Rank ``value`` as a payload for ``mode``; ``None`` if it is not one.

    For ``generate`` an object with a ``commands`` key ranks before a
    bare array.  A bare array only counts when it is the whole text or
    every item in it names a command, so stray brackets in prose are
    ignored.
    """
    if mode is Mode.GENERATE:
        if isinstance(value, dict):
            return 0 if "commands" in value else None
        if isinstance(value, list):
            names_commands = bool(value) and all(
                isinstance(item, dict) and "command" in item for item in value
            )
            if whole or names_commands:
                return 1
        return None
    if mode is Mode.EXPLAIN:
        return 0 if isinstance(value, dict) and "explanation" in value else None
    if isinstance(value, dict) and ("cause" in value or "solution" in value):
        return 0
    return None


def _require_text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise _Invalid(f"'{key}' must be a non-empty string")
    return value.strip()


def _build_generate(value: Any) -> GenerateResult:
    entries = value if isinstance(value, list) else value.get("commands")
    if not isinstance(entries, list):
        raise _Invalid("'commands' must be a list")
    candidates: List[Candidate] = []
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise _Invalid(f"candidate {position} is not an object")
        command = entry.get("command")
        if not isinstance(command, str) or not command.strip():
            raise _Invalid(f"candidate {position} has no command")
        description = entry.get("description")
        if description is not None and not isinstance(description, str):
            raise _Invalid(f"candidate {position} has a non-text description")
        candidates.append(
            Candidate(
                command=command.strip(),
                description=description.strip() if description else None,
            )
        )
    return GenerateResult(commands=candidates)


def _build_explain(value: dict) -> ExplainResult:
    return ExplainResult(explanation=_require_text(value, "explanation"))


def _build_error(value: dict) -> ErrorResult:
    cause = _require_text(value, "cause")
    explanation = _require_text(value, "explanation")
    solution = value.get("solution")
    if not isinstance(solution, list) or not solution:
        raise _Invalid("'solution' must be a non-empty list")
    steps: List[str] = []
    for step in solution:
        if not isinstance(step, str) or not step.strip():
            raise _Invalid("'solution' steps must be non-empty strings")
        steps.append(step.strip())
    return ErrorResult(cause=cause, explanation=explanation, solution=steps)


_BUILDERS = {
    Mode.GENERATE: _build_generate,
    Mode.EXPLAIN: _build_explain,
    Mode.ERROR: _build_error,
}


def parse(mode: Mode, text: str) -> ParseOutcome:
    """Extract the payload for ``mode`` from ``text``.

    :param mode: Mode the request was dispatched with.
    :param text: Aggregated response text.
    :returns: A successful outcome holding a :data:`ParsedResult`, or a
      failure whose ``reason`` explains what was wrong.
    """
    mode = Mode(mode)
    if not text or not text.strip():
        return ParseOutcome.failure(EMPTY_OR_MALFORMED)
    ranked = []
    for position, (value, whole) in enumerate(_scan(text)):
        rank = _container_rank(mode, value, whole)
        if rank is not None:
            ranked.append((rank, position, value))
    first_problem: Optional[str] = None
    for _, _, value in sorted(ranked, key=lambda item: item[:2]):
        try:
            return ParseOutcome.success(_BUILDERS[mode](value))
        except _Invalid as exc:
            if first_problem is None:
                first_problem = str(exc)
    if first_problem is not None:
        return ParseOutcome.failure(f"{EMPTY_OR_MALFORMED} ({first_problem})")
    return ParseOutcome.failure(EMPTY_OR_MALFORMED)
