"""Identifier and path conventions.

Object IDs are vault-relative paths without the ``.md`` extension;
embedded objects append ``#slug``. Trait IDs are positional:
``<relFilePath>:trait:<ordinal>``.

Protected-path checks operate on slash-normalised vault-relative paths.
"""

from __future__ import annotations

import re
import unicodedata
from pathlib import PurePosixPath

MARKDOWN_SUFFIX = ".md"
TRAIT_ID_SEPARATOR = ":trait:"

# Prefixes no mutation may ever touch, regardless of vault config.
BUILTIN_PROTECTED_PREFIXES: tuple[str, ...] = (".raven/", ".trash/", ".git/")


def normalize_rel_path(path: str) -> str:
    """Slash-normalise a vault-relative path and drop a leading ``./``."""
    p = path.replace("\\", "/").strip()
    while p.startswith("./"):
        p = p[2:]
    return p.lstrip("/")


def file_path_to_object_id(rel_path: str) -> str:
    """``people/freya.md`` -> ``people/freya``."""
    p = normalize_rel_path(rel_path)
    if p.endswith(MARKDOWN_SUFFIX):
        p = p[: -len(MARKDOWN_SUFFIX)]
    return p


def object_id_to_file_path(object_id: str) -> str:
    """``people/freya#notes`` -> ``people/freya.md``."""
    base = split_fragment(object_id)[0]
    base = normalize_rel_path(base)
    if base.endswith(MARKDOWN_SUFFIX):
        return base
    return base + MARKDOWN_SUFFIX


def split_fragment(ref: str) -> tuple[str, str | None]:
    """Split ``"a/b#frag"`` into ``("a/b", "frag")``."""
    base, sep, fragment = ref.partition("#")
    if not sep:
        return ref, None
    return base, fragment or None


def short_name(object_id: str) -> str:
    """Final path segment of an object ID."""
    return PurePosixPath(split_fragment(object_id)[0]).name


def heading_slug(text: str) -> str:
    """Convert heading text into a fragment slug.

    Letters and digits are kept (lower-cased); spaces, dashes, underscores
    and colons collapse into single dashes; everything else is dropped.
    """
    out: list[str] = []
    prev_dash = False
    for ch in text.lower():
        if ch.isalnum():
            out.append(ch)
            prev_dash = False
        elif ch in " -_:":
            if not prev_dash and out:
                out.append("-")
                prev_dash = True
    return "".join(out).rstrip("-")


_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """ASCII slug used for loose alias and name-field comparisons."""
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _SLUG_STRIP.sub("-", folded.lower()).strip("-")


# ---------------------------------------------------------------------------
# Trait IDs
# ---------------------------------------------------------------------------


def make_trait_id(rel_path: str, ordinal: int) -> str:
    return f"{normalize_rel_path(rel_path)}{TRAIT_ID_SEPARATOR}{ordinal}"


def parse_trait_id(trait_id: str) -> tuple[str, int]:
    """Split a trait ID into ``(file_path, ordinal)``.

    Raises:
        ValueError: If the ID is not ``<path>:trait:<non-negative int>``.
    """
    parts = trait_id.split(TRAIT_ID_SEPARATOR)
    if len(parts) != 2 or not parts[0]:
        msg = f"Invalid trait id: {trait_id!r}"
        raise ValueError(msg)
    try:
        ordinal = int(parts[1])
    except ValueError:
        msg = f"Invalid trait index in {trait_id!r}"
        raise ValueError(msg) from None
    if ordinal < 0:
        msg = f"Invalid trait index in {trait_id!r}"
        raise ValueError(msg)
    return normalize_rel_path(parts[0]), ordinal


# ---------------------------------------------------------------------------
# Protected paths
# ---------------------------------------------------------------------------


def _as_prefix(prefix: str) -> str:
    p = normalize_rel_path(prefix)
    if p and not p.endswith("/"):
        p += "/"
    return p


def protected_prefixes(extra: tuple[str, ...] | list[str] = ()) -> tuple[str, ...]:
    """Built-in prefixes unioned with *extra*, normalised and de-duplicated."""
    merged: list[str] = []
    for prefix in (*BUILTIN_PROTECTED_PREFIXES, *extra):
        p = _as_prefix(prefix)
        if p and p not in merged:
            merged.append(p)
    return tuple(merged)


def is_protected_rel_path(rel_path: str, extra: tuple[str, ...] | list[str] = ()) -> bool:
    """True when *rel_path* sits under (or is) a protected prefix."""
    p = normalize_rel_path(rel_path)
    for prefix in protected_prefixes(extra):
        if p.startswith(prefix) or p == prefix.rstrip("/"):
            return True
    return False
