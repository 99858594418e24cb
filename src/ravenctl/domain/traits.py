"""Inline trait annotations — ``@name`` and ``@name(value)``.

The scanner reports the exact character span of every annotation so
mutators can rewrite the span directly instead of re-matching line text.
Values are scanned with balanced parentheses, so ``@note(see (a) first)``
carries the value ``see (a) first``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# ``@`` must open the line or follow whitespace or a list marker.
_TRAIT_HEAD = re.compile(r"(?<![^\s\-\*])@(\w+)")


@dataclass(frozen=True)
class TraitMatch:
    """One annotation found on a line.

    ``start``/``end`` are 0-based offsets into the line; ``start`` points
    at the ``@`` and ``end`` is one past the closing parenthesis (or the
    last name character for bare traits).
    """

    name: str
    value: str | None
    start: int
    end: int


def _scan_args(line: str, pos: int) -> tuple[str, int] | None:
    """Scan an optional ``\\s*( ... )`` group starting at *pos*.

    Returns ``(inner_text, end_offset)`` or None if no balanced group follows.
    """
    i = pos
    while i < len(line) and line[i] in " \t":
        i += 1
    if i >= len(line) or line[i] != "(":
        return None
    depth = 0
    for j in range(i, len(line)):
        ch = line[j]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return line[i + 1 : j], j + 1
    return None


def scan_traits(line: str) -> list[TraitMatch]:
    """Return every trait annotation on *line*, left to right."""
    matches: list[TraitMatch] = []
    pos = 0
    while True:
        m = _TRAIT_HEAD.search(line, pos)
        if m is None:
            break
        name = m.group(1)
        args = _scan_args(line, m.end())
        if args is None:
            matches.append(TraitMatch(name=name, value=None, start=m.start(), end=m.end()))
            pos = m.end()
            continue
        inner, end = args
        value = inner.strip() or None
        matches.append(TraitMatch(name=name, value=value, start=m.start(), end=end))
        pos = end
    return matches


def format_trait(name: str, value: str) -> str:
    return f"@{name}({value})"


def replace_span(line: str, start: int, end: int, replacement: str) -> str:
    return line[:start] + replacement + line[end:]


def find_trait_on_line(line: str, trait_type: str, *, start: int | None = None) -> TraitMatch | None:
    """Locate the ``@trait_type`` annotation on *line*.

    When *start* is given, the annotation beginning at that offset wins;
    otherwise (or if the line drifted) the first annotation of the type.
    """
    candidates = [t for t in scan_traits(line) if t.name == trait_type]
    if not candidates:
        return None
    if start is not None:
        for cand in candidates:
            if cand.start == start:
                return cand
    return candidates[0]
