"""Vault — repository over the vault directory, its schema and its index.

The Vault is the single dependency injected into every service. It owns
the (lazily opened) index, the parsed schema, path protection, and the
:meth:`file_transaction` context manager that makes multi-file mutations
all-or-nothing:

- Every write is atomic on its own (temp file + ``os.replace``).
- Across files, compensation: written files are restored from backup,
  created files are deleted and moved files are moved back when the
  block raises.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ravenctl.domain.content import parse_frontmatter
from ravenctl.domain.paths import is_protected_rel_path, normalize_rel_path, protected_prefixes
from ravenctl.domain.schema import SCHEMA_FILENAME, parse_schema
from ravenctl.infrastructure.database.engine import index_path
from ravenctl.infrastructure.filesystem import (
    atomic_move,
    atomic_write_text,
    read_text,
    resolve_in_vault,
    vault_relative,
)
from ravenctl.infrastructure.index import IndexDatabase
from ravenctl.infrastructure.resolver import ResolveOptions
from ravenctl.infrastructure.walker import WalkResult, read_and_parse

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import date
    from typing import Any

    from ravenctl.config.settings import RavenSettings
    from ravenctl.domain.schema import Schema
    from ravenctl.infrastructure.resolver import Resolver

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# File operation tracking for compensation-based rollback
# ---------------------------------------------------------------------------


@dataclass
class _FileOp:
    """A tracked file change within a file transaction."""

    path: Path
    backup: str | None = None  # original content for updates, None for creates
    moved_from: Path | None = None  # set for renames

    def rollback(self) -> None:
        """Undo this file operation (best-effort)."""
        try:
            if self.moved_from is not None:
                atomic_move(self.path, self.moved_from)
            elif self.backup is not None:
                atomic_write_text(self.path, self.backup)
            else:
                self.path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to rollback file operation: %s", self.path)


@dataclass
class FileTransaction:
    """Tracked file I/O yielded by :meth:`Vault.file_transaction`.

    All writes must go through this object so the Vault can compensate
    on rollback. Direct filesystem writes bypass the safety net.
    """

    _vault: Vault
    _file_ops: list[_FileOp] = field(default_factory=list, repr=False)

    @property
    def touched(self) -> list[str]:
        """Vault-relative paths written, created or moved (in order)."""
        seen: dict[str, None] = {}
        for op in self._file_ops:
            seen[vault_relative(self._vault.root, op.path)] = None
        return list(seen)

    def read_file(self, path: Path) -> str:
        return read_text(path)

    def write_file(self, path: Path, content: str) -> None:
        """Atomically write *content* to *path*, tracking for rollback."""
        backup = read_text(path) if path.exists() else None
        atomic_write_text(path, content)
        self._file_ops.append(_FileOp(path=path, backup=backup))

    def move_file(self, source: Path, destination: Path) -> None:
        """Rename *source* to *destination*, tracking for rollback."""
        atomic_move(source, destination)
        self._file_ops.append(_FileOp(path=destination, moved_from=source))

    def read_content(self, path: Path) -> tuple[dict[str, Any], str]:
        return parse_frontmatter(self.read_file(path))


# ---------------------------------------------------------------------------
# Vault: the repository
# ---------------------------------------------------------------------------


class Vault:
    """Repository encapsulating the vault directory, schema and index.

    Constructed once at CLI startup from :class:`RavenSettings`; the index
    is only opened on first use so ``--help`` never touches the database.
    """

    def __init__(self, settings: RavenSettings) -> None:
        self._settings = settings
        self._index: IndexDatabase | None = None
        self._index_rebuilt = False
        self._schema: Schema | None = None
        self._schema_loaded = False

    @property
    def root(self) -> Path:
        """The vault root directory."""
        return self._settings.vault_root

    @property
    def settings(self) -> RavenSettings:
        return self._settings

    @property
    def daily_directory(self) -> str:
        return self._settings.vault.daily_directory

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    @property
    def schema(self) -> Schema | None:
        """Parsed ``schema.yaml``, or None when the vault has none.

        Raises:
            SchemaError: If the file exists but is invalid.
        """
        if not self._schema_loaded:
            path = self.root / SCHEMA_FILENAME
            self._schema = parse_schema(read_text(path)) if path.is_file() else None
            self._schema_loaded = True
        return self._schema

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    @property
    def index(self) -> IndexDatabase:
        """The index, opened on first access (rebuilt if incompatible).

        Raises:
            IndexDatabaseError: If the index cannot be opened or recreated.
        """
        if self._index is None:
            self._index, self._index_rebuilt = IndexDatabase.open_with_rebuild(
                index_path(self.root),
                resolve_batch_size=self._settings.index.resolve_batch_size,
            )
            if self._index_rebuilt:
                logger.warning("Index schema changed; the index was rebuilt empty")
        return self._index

    @property
    def index_rebuilt(self) -> bool:
        """True if opening the index dropped an incompatible one."""
        return self._index_rebuilt

    def acknowledge_rebuild(self) -> None:
        """Mark a rebuilt index as repopulated (after a full reindex)."""
        self._index_rebuilt = False

    def resolver(self, *, allow_missing: bool = False, today: date | None = None) -> Resolver:
        return self.index.resolver(
            ResolveOptions(
                vault_root=self.root,
                daily_directory=self.daily_directory,
                allow_missing=allow_missing,
                today=today,
            )
        )

    def close(self) -> None:
        """Dispose of the index engine, if it was opened."""
        if self._index is not None:
            self._index.close()
            self._index = None

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def protected_extra(self) -> tuple[str, ...]:
        """Configured protected prefixes, plus the trash directory."""
        extra = list(self._settings.vault.protected_prefixes)
        trash = self._settings.vault.trash_directory
        if trash:
            extra.append(trash)
        return tuple(extra)

    @property
    def protected_prefixes(self) -> tuple[str, ...]:
        return protected_prefixes(self.protected_extra)

    @property
    def excluded_prefixes(self) -> list[str]:
        """Directories whose files are never indexed (purged every reindex)."""
        prefixes = [self._settings.vault.trash_directory, *self._settings.vault.exclude_dirs]
        return [p.strip("/") for p in prefixes if p and p.strip("/")]

    def is_protected(self, rel_path: str) -> bool:
        """True if mutations must not touch *rel_path*.

        A path that escapes the vault counts as protected.
        """
        try:
            resolve_in_vault(self.root, rel_path)
        except ValueError:
            return True
        return is_protected_rel_path(normalize_rel_path(rel_path), self.protected_extra)

    def abs_path(self, rel_path: str) -> Path:
        """Absolute path for *rel_path* (raises ValueError if it escapes)."""
        return resolve_in_vault(self.root, rel_path)

    def rel_path(self, path: Path) -> str:
        return vault_relative(self.root, path)

    def parse_file(self, rel_path: str) -> WalkResult:
        """Read and parse one vault file without touching the index."""
        return read_and_parse(self.root, normalize_rel_path(rel_path))

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def file_transaction(self) -> Iterator[FileTransaction]:
        """All-or-nothing multi-file mutation.

        On an exception the tracked operations are compensated in reverse
        order and the exception is re-raised. Rollback is best-effort per
        file to avoid masking the original error.

        Usage::

            with vault.file_transaction() as txn:
                txn.write_file(path, new_content)
                txn.move_file(src, dst)
        """
        file_ops: list[_FileOp] = []
        txn = FileTransaction(_vault=self, _file_ops=file_ops)
        try:
            yield txn
        except BaseException:
            for op in reversed(file_ops):
                op.rollback()
            raise
