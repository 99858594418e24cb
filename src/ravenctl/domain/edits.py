"""Pure text edits used by plan operations.

All functions take and return whole-file content strings; none touch
the filesystem.
"""

from __future__ import annotations

import re

from ravenctl.domain.links import WikiLink, extract_wikilinks, format_wikilink
from ravenctl.domain.paths import split_fragment

_HEADING = re.compile(r"^(#{1,6})[ \t]+(.*?)[ \t]*#*[ \t]*$")


def bullet(text: str) -> str:
    return f"- {text.strip()}"


def _split(content: str) -> list[str]:
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _join(lines: list[str]) -> str:
    return "\n".join(lines) + "\n"


def _heading_level(line: str) -> tuple[int, str] | None:
    m = _HEADING.match(line.strip())
    if m is None:
        return None
    return len(m.group(1)), m.group(2).strip()


def _insert_after_content(lines: list[str], start: int, stop: int, new_line: str) -> list[str]:
    """Insert after the last non-blank line in ``lines[start:stop]``."""
    at = start
    for i in range(start, stop):
        if lines[i].strip():
            at = i + 1
    return [*lines[:at], new_line, *lines[at:]]


def append_to_end(content: str, new_line: str) -> str:
    """Append *new_line* as the last line of the file."""
    lines = _split(content)
    lines.append(new_line)
    return _join(lines)


def append_to_range(content: str, line_start: int, line_end: int, new_line: str) -> str:
    """Append inside the 1-indexed inclusive block ``line_start..line_end``.

    The new line lands right after the block's last non-blank line.
    """
    lines = _split(content)
    stop = min(max(line_end, line_start), len(lines))
    return _join(_insert_after_content(lines, max(line_start - 1, 0), stop, new_line))


def append_under_heading(content: str, heading: str, new_line: str) -> str:
    """Append beneath *heading*, creating the heading at the end if absent.

    *heading* is either the heading text (``Tasks``) or a full markdown
    heading (``### Tasks``); bare text is created at level 2.
    """
    wanted = _heading_level(heading)
    level, text = wanted if wanted else (2, heading.strip())

    lines = _split(content)
    found: int | None = None
    for i, line in enumerate(lines):
        parsed = _heading_level(line)
        if parsed and parsed[1] == text and (wanted is None or parsed[0] == level):
            found = i
            level = parsed[0]
            break

    if found is None:
        if lines and lines[-1].strip():
            lines.append("")
        lines.extend([f"{'#' * level} {text}", new_line])
        return _join(lines)

    stop = len(lines)
    for j in range(found + 1, len(lines)):
        parsed = _heading_level(lines[j])
        if parsed and parsed[0] <= level:
            stop = j
            break
    return _join(_insert_after_content(lines, found, stop, new_line))


def replace_exactly_once(content: str, old: str, new: str) -> tuple[str, int]:
    """Replace *old* with *new* only when it occurs exactly once.

    Returns ``(content, match_count)``; content is unchanged unless the
    count is 1.
    """
    count = content.count(old) if old else 0
    if count != 1:
        return content, count
    return content.replace(old, new, 1), 1


def retarget_link(link_text: str, new_target: str) -> str | None:
    """Rewrite ``[[old#frag|display]]`` to point at *new_target*.

    The fragment and display text are kept. Returns None if *link_text*
    is not a single wikilink.
    """
    links: list[WikiLink] = extract_wikilinks(link_text)
    if len(links) != 1 or links[0].start != 0 or links[0].end != len(link_text):
        return None
    _, fragment = split_fragment(links[0].raw)
    target = f"{new_target}#{fragment}" if fragment else new_target
    return format_wikilink(target, links[0].display)
