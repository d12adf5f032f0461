"""
Text sanitizer — turn raw process output into clean display lines.

arduino-cli colours its output and draws progress bars with carriage
returns. Before anything reaches a sink, a chunk is split into lines and
every terminal control sequence is removed.
"""

from __future__ import annotations

import re
from typing import Iterable

# ESC followed by: an OSC string (ESC ] ... BEL|ST), a CSI sequence
# (ESC [ params intermediates final), or a two-byte escape.
_ANSI_RE = re.compile(
    r"""
    \x1B
    (?:
        \] [^\x07\x1B]* (?:\x07|\x1B\\)
      | \[ [0-?]* [ -/]* [@-~]
      | [@-Z\\-_]
    )
    """,
    re.VERBOSE,
)

ERROR_PREFIX = "Error: "


def strip_ansi(line: str) -> str:
    """Remove ANSI escape sequences from a single line."""
    return _ANSI_RE.sub("", line)


def sanitize(chunk: str) -> list[str]:
    """Split ``chunk`` into lines and strip escape sequences from each.

    Empty lines inside the chunk are kept. A trailing line break does
    not produce a trailing empty line. Idempotent on clean text.

    >>> sanitize("line1\\n\\x1b[31mline2\\x1b[0m\\n")
    ['line1', 'line2']
    """
    return [strip_ansi(line) for line in chunk.splitlines()]


def has_content(line: str) -> bool:
    """True if the line has at least one non-whitespace character."""
    return bool(line.strip())


def error_lines(lines: Iterable[str]) -> list[str]:
    """Stderr filter: drop blank lines, prefix the rest."""
    return [f"{ERROR_PREFIX}{line}" for line in lines if has_content(line)]
