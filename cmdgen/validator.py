"""Safety checks for suggested commands.

Suggestions come straight from a language model, so before one is run
it is screened for patterns that are either incomplete (unresolved
``<placeholder>`` tokens) or destructive.  A flagged command is not
refused outright; in safe mode the user is asked to confirm it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple

_PLACEHOLDER = re.compile(r"<[A-Za-z][\w ./-]*>")

DANGEROUS_PATTERNS: List[Tuple[str, str]] = [
    (r"\brm\s+(-[a-z]*r[a-z]*f|-[a-z]*f[a-z]*r)\b", "recursive forced delete"),
    (r"\bmkfs(\.\w+)?\b", "filesystem format"),
    (r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:", "fork bomb"),
    (r"\bdd\s+if=", "raw disk copy"),
    (r">\s*/dev/(sd|nvme|hd|disk)", "write to block device"),
    (r"\b(shutdown|reboot|halt|poweroff)\b", "power state change"),
    (r"\bchmod\s+-R\s+777\s+/(\s|$)", "recursive permission change on /"),
    (r"\b(Remove-Item)\b.*-Recurse.*-Force", "recursive forced delete"),
    (r"\bformat\s+[a-zA-Z]:", "drive format"),
]


@dataclass(frozen=True)
class Assessment:
    """Outcome of :func:`assess_command`."""

    ok: bool
    reasons: Tuple[str, ...] = ()

    @property
    def summary(self) -> str:
        return ", ".join(self.reasons)


def assess_command(command: str) -> Assessment:
    """Screen a command before execution.

    Checks, in order:

    * the command must not be empty or whitespace;
    * it must not contain unresolved placeholders such as ``<file>``;
    * it must not match any of :data:`DANGEROUS_PATTERNS`.
    """
    cmd = command.strip()
    if not cmd:
        return Assessment(False, ("command is empty",))
    reasons: List[str] = []
    if _PLACEHOLDER.search(cmd):
        reasons.append("contains unresolved placeholders")
    for pattern, label in DANGEROUS_PATTERNS:
        if re.search(pattern, cmd, flags=re.IGNORECASE) and label not in reasons:
            reasons.append(label)
    return Assessment(not reasons, tuple(reasons))

