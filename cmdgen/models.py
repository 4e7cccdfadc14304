"""Typed values passed between the dispatcher, parser and session."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Union


class Mode(str, enum.Enum):
    """Operation mode selected on the command line."""

    GENERATE = "generate"
    EXPLAIN = "explain"
    ERROR = "error"


@dataclass(frozen=True)
class Candidate:
    """One suggested command and its optional description."""

    command: str
    description: Optional[str] = None


@dataclass(frozen=True)
class GenerateResult:
    commands: List[Candidate] = field(default_factory=list)


@dataclass(frozen=True)
class ExplainResult:
    explanation: str


@dataclass(frozen=True)
class ErrorResult:
    cause: str
    explanation: str
    solution: List[str]


ParsedResult = Union[GenerateResult, ExplainResult, ErrorResult]


@dataclass(frozen=True)
class PromptContext:
    """Opaque facts about the user's environment forwarded into prompts."""

    os: str
    os_version: str
    shell: str
    lang: str = "en"
