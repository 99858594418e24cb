"""Vault walker — enumerate markdown files and parse them one at a time.

Per-file problems (unreadable file, malformed frontmatter) are reported
in :attr:`WalkResult.error` rather than raised, so one bad file never
stops the walk. Only a vault root that cannot be enumerated is fatal.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from ravenctl.domain.parser import Document, ParseError, ParseOptions, parse_document
from ravenctl.domain.paths import MARKDOWN_SUFFIX
from ravenctl.infrastructure.filesystem import read_text

logger = logging.getLogger(__name__)

# Directories never walked, whatever the vault config says.
ALWAYS_EXCLUDED: frozenset[str] = frozenset({".raven", ".trash", ".git"})


@dataclass(frozen=True)
class WalkResult:
    """One walked file.

    ``skipped`` files were declined by the walk's *select* callback and
    were never read.
    """

    relative_path: str
    document: Document | None
    mtime: float
    error: str | None = None
    skipped: bool = False


def _excluded(rel_dir: str, exclude: frozenset[str]) -> bool:
    rel_dir = rel_dir.strip("/")
    for entry in exclude:
        entry = entry.strip("/")
        if rel_dir == entry or rel_dir.startswith(entry + "/"):
            return True
    return False


def iter_markdown_files(root: Path, *, exclude_dirs: Iterable[str] = ()) -> Iterator[str]:
    """Yield vault-relative markdown paths in a stable (sorted) order.

    Raises:
        NotADirectoryError: If *root* is not a directory.
    """
    if not root.is_dir():
        msg = f"Vault root is not a directory: {root}"
        raise NotADirectoryError(msg)

    exclude = frozenset(ALWAYS_EXCLUDED | {d.strip("/") for d in exclude_dirs if d.strip("/")})

    def _onerror(exc: OSError) -> None:
        logger.warning("Cannot read directory %s: %s", exc.filename, exc.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_onerror):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir
        dirnames[:] = sorted(
            d for d in dirnames if not _excluded(f"{rel_dir}/{d}" if rel_dir else d, exclude)
        )
        for name in sorted(filenames):
            if name.endswith(MARKDOWN_SUFFIX):
                yield f"{rel_dir}/{name}" if rel_dir else name


def walk_vault(
    root: Path,
    *,
    exclude_dirs: Iterable[str] = (),
    parse_options: ParseOptions | None = None,
    cancel: threading.Event | None = None,
    select: Callable[[str, float], bool] | None = None,
) -> Iterator[WalkResult]:
    """Walk *root*, yielding one :class:`WalkResult` per markdown file.

    *select* is called with each file's relative path and mtime before it
    is read; a file it declines is yielded with ``skipped=True``. *cancel*
    is checked between files, never mid-file.
    """
    for rel_path in iter_markdown_files(root, exclude_dirs=exclude_dirs):
        if cancel is not None and cancel.is_set():
            logger.info("Walk cancelled before %s", rel_path)
            return
        if select is not None:
            try:
                mtime = (root / rel_path).stat().st_mtime
            except OSError as exc:
                yield WalkResult(relative_path=rel_path, document=None, mtime=0.0, error=str(exc))
                continue
            if not select(rel_path, mtime):
                yield WalkResult(relative_path=rel_path, document=None, mtime=mtime, skipped=True)
                continue
        yield read_and_parse(root, rel_path, parse_options=parse_options)


def read_and_parse(
    root: Path,
    rel_path: str,
    *,
    parse_options: ParseOptions | None = None,
) -> WalkResult:
    """Stat, read and parse a single vault file."""
    path = root / rel_path
    try:
        mtime = path.stat().st_mtime
        content = read_text(path)
    except (OSError, UnicodeDecodeError) as exc:
        return WalkResult(relative_path=rel_path, document=None, mtime=0.0, error=str(exc))

    try:
        doc = parse_document(content, rel_path, parse_options)
    except ParseError as exc:
        return WalkResult(relative_path=rel_path, document=None, mtime=mtime, error=str(exc))
    return WalkResult(relative_path=rel_path, document=doc, mtime=mtime)
