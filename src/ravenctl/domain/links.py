"""Reference and tag extraction — ``[[wikilinks]]`` and ``#tags``.

Pure functions, no infrastructure dependencies. Consumed by the document
parser and by the move operation when rewriting inbound links.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# [[target]] or [[target|display]]; the target cannot contain [ ] or |.
_WIKILINK_PATTERN = re.compile(r"\[\[([^\]\[|]+)(?:\|([^\]]+))?\]\]")

# #tag not glued to a word, another # or an entity (&#123;).
_TAG_PATTERN = re.compile(r"(?<![\w#&/])#([A-Za-z][\w\-/]*)")

# Inline code spans are blanked before scanning.
_INLINE_CODE = re.compile(r"`[^`\n]*`")


@dataclass(frozen=True)
class WikiLink:
    """A wikilink found on one line."""

    raw: str  # target portion, stripped
    display: str | None
    start: int  # offset of the opening [[
    end: int  # one past the closing ]]


def mask_inline_code(line: str) -> str:
    """Replace inline code spans with spaces, keeping offsets stable."""
    return _INLINE_CODE.sub(lambda m: " " * len(m.group(0)), line)


def extract_wikilinks(line: str) -> list[WikiLink]:
    """Extract all wikilinks from a single line.

    A link preceded by ``[`` (YAML ``[[[a]]]`` style arrays) is ignored.
    """
    results: list[WikiLink] = []
    for match in _WIKILINK_PATTERN.finditer(line):
        if match.start() > 0 and line[match.start() - 1] == "[":
            continue
        target = match.group(1).strip()
        if not target:
            continue
        display = match.group(2).strip() if match.group(2) is not None else None
        results.append(WikiLink(raw=target, display=display, start=match.start(), end=match.end()))
    return results


def strip_wikilink(value: str) -> str:
    """``"[[people/freya|Freya]]"`` -> ``"people/freya"``; other text unchanged."""
    text = value.strip()
    links = extract_wikilinks(text)
    if len(links) == 1 and links[0].start == 0 and links[0].end == len(text):
        return links[0].raw
    return text


def extract_tags(line: str) -> list[str]:
    """Inline ``#tags`` on a line, in order of appearance."""
    return [m.group(1).rstrip("/-") for m in _TAG_PATTERN.finditer(line)]


def format_wikilink(target: str, display: str | None = None) -> str:
    if display:
        return f"[[{target}|{display}]]"
    return f"[[{target}]]"
