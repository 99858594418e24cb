"""Frontmatter parsing and rendering.

Round-trip parsing via ruamel.yaml preserves comments, key order and
quote styles, so a ``set`` mutation rewrites only the keys it touches.
:func:`split_frontmatter` is the read-only entry point used by the
document parser; it also reports where the YAML block ends so body line
numbers stay file-relative.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from io import StringIO
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

_FRONTMATTER_DELIMITER = "---"


class FrontmatterError(ValueError):
    """Raised when a frontmatter block is present but not valid YAML."""


def _new_yaml() -> YAML:
    """Create a fresh round-trip YAML parser.

    A new instance per call avoids corrupted internal emitter state from
    propagating across operations (ruamel.yaml's YAML object is stateful
    and a failed dump can leave the singleton in a broken state).
    """
    y = YAML()
    y.preserve_quotes = True
    y.default_flow_style = False
    return y


@dataclass(frozen=True)
class Frontmatter:
    """A parsed frontmatter block.

    Attributes:
        fields: Plain-Python mapping (ruamel containers and dates converted).
        raw: The YAML text between the delimiters.
        end_line: 1-indexed line number of the closing ``---``.
    """

    fields: dict[str, Any] = field(default_factory=dict)
    raw: str = ""
    end_line: int = 0


def to_plain(value: Any) -> Any:
    """Convert ruamel round-trip containers and dates into JSON-safe values."""
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return value
    return str(value)


def _locate(lines: list[str]) -> int | None:
    """Return the 0-based index of the closing delimiter, or None."""
    if not lines or lines[0].strip() != _FRONTMATTER_DELIMITER:
        return None
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == _FRONTMATTER_DELIMITER:
            return i
    return None


def load_yaml(yaml_block: str) -> Any:
    """Load a YAML document, wrapping parser errors in FrontmatterError."""
    try:
        return _new_yaml().load(yaml_block)
    except YAMLError as exc:
        msg = f"Invalid frontmatter YAML: {exc}"
        raise FrontmatterError(msg) from exc


def split_frontmatter(content: str) -> Frontmatter | None:
    """Extract the frontmatter block from *content*.

    Returns None if the file does not open with a ``---`` delimited block.

    Raises:
        FrontmatterError: If the block exists but is not a YAML mapping.
    """
    lines = content.replace("\r\n", "\n").split("\n")
    end_idx = _locate(lines)
    if end_idx is None:
        return None

    raw = "\n".join(lines[1:end_idx])
    data = load_yaml(raw)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = "Frontmatter must be a YAML mapping"
        raise FrontmatterError(msg)
    return Frontmatter(fields=to_plain(data), raw=raw, end_line=end_idx + 1)


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter and body from markdown content.

    The returned mapping is the ruamel round-trip object, so mutating it
    and passing it back to :func:`render_frontmatter` keeps comments and
    key order intact.

    Returns:
        A ``(frontmatter, body)`` tuple. Files without frontmatter yield
        ``({}, content)``.
    """
    normalized = content.replace("\r\n", "\n")
    lines = normalized.split("\n")
    end_idx = _locate(lines)
    if end_idx is None:
        return {}, content

    fm = load_yaml("\n".join(lines[1:end_idx]))
    if fm is None:
        fm = {}
    if not isinstance(fm, dict):
        msg = "Frontmatter must be a YAML mapping"
        raise FrontmatterError(msg)
    body = "\n".join(lines[end_idx + 1 :])
    return fm, body


def render_frontmatter(frontmatter: dict[str, Any], body: str) -> str:
    """Render a frontmatter mapping and body text back into markdown."""
    buf = StringIO()
    if frontmatter:
        _new_yaml().dump(frontmatter, buf)
    yaml_text = buf.getvalue()

    parts = [_FRONTMATTER_DELIMITER, "\n", yaml_text, _FRONTMATTER_DELIMITER, "\n"]
    if body:
        parts.append(body)
    return "".join(parts)
