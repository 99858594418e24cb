"""Document parser — markdown file content to Objects, Traits, Refs and Tags.

A pragmatic line scanner, not a full markdown grammar:

- Frontmatter ``type`` sets the file object's type (default ``page``).
- ATX headings open ``section`` objects, or typed embedded objects when
  the next line is a ``::type(key=value, ...)`` declaration.
- Fenced code blocks and inline code spans are never scanned.

Line numbers are 1-indexed and file-relative (frontmatter lines count).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from ravenctl.domain.content import FrontmatterError, split_frontmatter
from ravenctl.domain.links import extract_tags, extract_wikilinks, mask_inline_code
from ravenctl.domain.paths import file_path_to_object_id, heading_slug, normalize_rel_path
from ravenctl.domain.traits import scan_traits

_HEADING = re.compile(r"^(#{1,6})[ \t]+(.*?)(?:[ \t]+#+)?[ \t]*$")
_TYPE_DECL = re.compile(r"^::([\w-]+)\s*(?:\((.*)\))?\s*$")
_FENCE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_LIST_MARKER = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(?:\[[ xX]\]\s+)?")


class ParseError(ValueError):
    """Raised when a file cannot be turned into a Document."""


@dataclass(frozen=True)
class ParseOptions:
    """Per-call parser options."""

    default_type: str = "page"
    section_type: str = "section"


@dataclass
class ParsedObject:
    id: str
    type: str
    fields: dict[str, Any]
    line_start: int
    line_end: int = 0
    heading: str | None = None
    heading_level: int | None = None
    parent_id: str | None = None


@dataclass(frozen=True)
class ParsedTrait:
    """A trait occurrence; ``start``/``end`` are offsets within the line."""

    trait_type: str
    value: str | None
    content: str
    parent_object_id: str
    line: int
    start: int
    end: int


@dataclass(frozen=True)
class ParsedRef:
    source_id: str
    target_raw: str
    display_text: str | None
    line: int
    start: int
    end: int


@dataclass(frozen=True)
class ParsedTag:
    tag: str
    object_id: str
    line: int


@dataclass
class Document:
    """Everything the index stores for one file."""

    file_path: str
    objects: list[ParsedObject] = field(default_factory=list)
    traits: list[ParsedTrait] = field(default_factory=list)
    refs: list[ParsedRef] = field(default_factory=list)
    tags: list[ParsedTag] = field(default_factory=list)
    line_count: int = 0

    @property
    def file_object(self) -> ParsedObject:
        return self.objects[0]


# ---------------------------------------------------------------------------
# Type declarations
# ---------------------------------------------------------------------------


def _split_args(text: str) -> list[str]:
    """Split on top-level commas (ignoring those in quotes, [[ ]] or parens)."""
    parts: list[str] = []
    buf: list[str] = []
    depth = 0
    quote: str | None = None
    for ch in text:
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch in "[(":
            depth += 1
        elif ch in "])":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    if buf:
        parts.append("".join(buf))
    return [p.strip() for p in parts if p.strip()]


def parse_type_declaration(line: str) -> tuple[str, dict[str, Any]] | None:
    """Parse ``::type(key=value, ...)`` into ``(type_name, fields)``.

    >>> parse_type_declaration('::meeting(id=standup, time="09:00")')
    ('meeting', {'id': 'standup', 'time': '09:00'})
    """
    m = _TYPE_DECL.match(line.strip())
    if m is None:
        return None
    fields: dict[str, Any] = {}
    for arg in _split_args(m.group(2) or ""):
        key, sep, value = arg.partition("=")
        if not sep:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        fields[key.strip()] = value
    return m.group(1), fields


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _frontmatter_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        return [t.lstrip("#") for t in value.replace(",", " ").split() if t.lstrip("#")]
    if isinstance(value, list):
        return [str(t).lstrip("#") for t in value if str(t).lstrip("#")]
    return []


def _parent_for_line(objects: list[ParsedObject], line: int) -> str:
    """ID of the object whose start is closest above *line*."""
    best = objects[0]
    for obj in objects[1:]:
        if obj.line_start <= line and obj.line_start >= best.line_start:
            best = obj
    return best.id


def _compute_line_ends(objects: list[ParsedObject], line_count: int) -> None:
    """File object spans the file; embedded objects end before the next heading."""
    last_line = max(line_count, 1)
    objects[0].line_end = last_line
    embedded = sorted(objects[1:], key=lambda o: o.line_start)
    for i, obj in enumerate(embedded):
        if i + 1 < len(embedded):
            obj.line_end = max(obj.line_start, embedded[i + 1].line_start - 1)
        else:
            obj.line_end = max(obj.line_start, last_line)


def parse_document(
    content: str,
    file_path: str,
    options: ParseOptions | None = None,
) -> Document:
    """Parse markdown *content* belonging to vault-relative *file_path*.

    Raises:
        ParseError: If the frontmatter block is malformed.
    """
    opts = options or ParseOptions()
    rel_path = normalize_rel_path(file_path)
    file_id = file_path_to_object_id(rel_path)

    normalized = content.replace("\r\n", "\n")
    lines = normalized.split("\n")
    line_count = len(lines) - 1 if normalized.endswith("\n") else len(lines)
    if normalized == "":
        line_count = 0

    try:
        fm = split_frontmatter(normalized)
    except FrontmatterError as exc:
        msg = f"{rel_path}: {exc}"
        raise ParseError(msg) from exc

    doc = Document(file_path=rel_path, line_count=line_count)
    fields: dict[str, Any] = {}
    file_type = opts.default_type
    body_start = 0
    if fm is not None:
        fields = dict(fm.fields)
        declared = fields.pop("type", None)
        if isinstance(declared, str) and declared.strip():
            file_type = declared.strip()
        body_start = fm.end_line

        for offset, raw_line in enumerate(fm.raw.split("\n")):
            for link in extract_wikilinks(raw_line):
                doc.refs.append(
                    ParsedRef(
                        source_id=file_id,
                        target_raw=link.raw,
                        display_text=link.display,
                        line=offset + 2,
                        start=link.start,
                        end=link.end,
                    )
                )
        for tag in _frontmatter_tags(fields.get("tags")):
            doc.tags.append(ParsedTag(tag=tag, object_id=file_id, line=1))

    doc.objects.append(ParsedObject(id=file_id, type=file_type, fields=fields, line_start=1))

    used_slugs: dict[str, int] = {}
    parent_stack: list[tuple[str, int]] = [(file_id, 0)]
    scan_lines: list[tuple[int, str]] = []
    decl_lines: set[int] = set()
    fence: str | None = None

    for idx in range(body_start, len(lines)):
        line_no = idx + 1
        line = lines[idx]

        fence_match = _FENCE.match(line)
        if fence is not None:
            if fence_match and _closes(fence_match.group(1), fence):
                fence = None
            continue
        if fence_match:
            fence = fence_match.group(1)
            continue

        heading = _HEADING.match(line)
        if heading is None:
            if line_no not in decl_lines:
                scan_lines.append((line_no, line))
            continue

        level = len(heading.group(1))
        text = heading.group(2).strip()
        while len(parent_stack) > 1 and parent_stack[-1][1] >= level:
            parent_stack.pop()
        parent_id = parent_stack[-1][0]

        decl = None
        if idx + 1 < len(lines):
            decl = parse_type_declaration(lines[idx + 1])

        if decl is not None:
            type_name, decl_fields = decl
            decl_lines.add(line_no + 1)
            explicit_id = decl_fields.pop("id", None)
            slug = str(explicit_id) if explicit_id else _unique_slug(
                heading_slug(text) or type_name, used_slugs
            )
            obj = ParsedObject(
                id=f"{file_id}#{slug}",
                type=type_name,
                fields=decl_fields,
                line_start=line_no,
                heading=text,
                heading_level=level,
                parent_id=parent_id,
            )
            # The declaration line may still carry references.
            scan_lines.append((line_no + 1, lines[idx + 1]))
        else:
            slug = _unique_slug(heading_slug(text) or "section", used_slugs)
            obj = ParsedObject(
                id=f"{file_id}#{slug}",
                type=opts.section_type,
                fields={"title": text, "level": level},
                line_start=line_no,
                heading=text,
                heading_level=level,
                parent_id=parent_id,
            )
        doc.objects.append(obj)
        parent_stack.append((obj.id, level))
        scan_lines.append((line_no, line))

    for line_no, raw_line in scan_lines:
        line = mask_inline_code(raw_line)
        owner = _parent_for_line(doc.objects, line_no)
        if line_no not in decl_lines:
            for trait in scan_traits(line):
                doc.traits.append(
                    ParsedTrait(
                        trait_type=trait.name,
                        value=trait.value,
                        content=_LIST_MARKER.sub("", raw_line).strip(),
                        parent_object_id=owner,
                        line=line_no,
                        start=trait.start,
                        end=trait.end,
                    )
                )
        for link in extract_wikilinks(line):
            doc.refs.append(
                ParsedRef(
                    source_id=owner,
                    target_raw=link.raw,
                    display_text=link.display,
                    line=line_no,
                    start=link.start,
                    end=link.end,
                )
            )
        for tag in extract_tags(line):
            doc.tags.append(ParsedTag(tag=tag, object_id=owner, line=line_no))

    doc.traits.sort(key=lambda t: (t.line, t.start))
    doc.refs.sort(key=lambda r: (r.line, r.start))
    _compute_line_ends(doc.objects, line_count)
    return doc


def _unique_slug(base: str, used: dict[str, int]) -> str:
    used[base] = used.get(base, 0) + 1
    if used[base] > 1:
        return f"{base}-{used[base]}"
    return base


def _closes(marker: str, fence: str) -> bool:
    return marker[0] == fence[0] and len(marker) >= len(fence)
