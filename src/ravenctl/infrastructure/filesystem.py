"""Filesystem operations for vault content.

INVARIANT: Files are truth. The index is derived and can always be
rebuilt from files alone (``ravenctl reindex --full``).

Every content write goes through :func:`atomic_write_text`: the new
bytes land in a temp file in the target directory and are moved into
place with ``os.replace``, so a crash mid-write never leaves a
half-written file.

Content is handled in memory with ``\\n`` line endings. A file that used
``\\r\\n`` gets ``\\r\\n`` back when it is rewritten.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from ravenctl.domain.paths import normalize_rel_path

CRLF = "\r\n"


def detect_newline(path: Path) -> str:
    """Line ending of the first line of *path*; ``\\n`` for new or one-line files."""
    try:
        with path.open("rb") as fh:
            first = fh.readline()
    except FileNotFoundError:
        return "\n"
    return CRLF if first.endswith(b"\r\n") else "\n"


def atomic_write_text(path: Path, content: str) -> None:
    """Write *content* to *path* atomically, creating parent directories.

    The existing file's permission bits and line endings are kept.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    mode: int | None = None
    newline = "\n"
    if path.exists():
        mode = path.stat().st_mode & 0o777
        newline = detect_newline(path)
    if newline == CRLF:
        content = content.replace(CRLF, "\n").replace("\n", CRLF)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def atomic_move(source: Path, destination: Path) -> None:
    """Rename *source* to *destination* (same filesystem, atomic)."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    os.replace(source, destination)


def read_text(path: Path) -> str:
    """UTF-8 content of *path* with line endings normalised to ``\\n``."""
    return path.read_text(encoding="utf-8")


def resolve_in_vault(vault_root: Path, rel_path: str) -> Path:
    """Absolute path for *rel_path*, guarded against escaping the vault.

    Raises:
        ValueError: If the resolved path is outside *vault_root*.
    """
    candidate = (vault_root / normalize_rel_path(rel_path)).resolve()
    if not candidate.is_relative_to(vault_root.resolve()):
        msg = f"Path escapes vault root: {rel_path}"
        raise ValueError(msg)
    return candidate


def vault_relative(vault_root: Path, path: Path) -> str:
    """Slash-normalised vault-relative form of an absolute *path*.

    Raises:
        ValueError: If *path* is not inside *vault_root*.
    """
    rel = path.resolve().relative_to(vault_root.resolve())
    return rel.as_posix()
