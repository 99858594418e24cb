"""InitService — scaffold a new vault.

Writes ``ravenctl.toml`` and ``schema.yaml`` (never overwriting existing
ones), creates the daily-note directory, and creates the index.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ravenctl.config.discovery import CONFIG_FILENAME, render_default_config
from ravenctl.domain.schema import SCHEMA_FILENAME
from ravenctl.infrastructure.database.engine import IndexDatabaseError, index_path
from ravenctl.infrastructure.filesystem import atomic_write_text
from ravenctl.infrastructure.index import IndexDatabase
from ravenctl.services.result import ServiceResult, failure
from ravenctl.services.telemetry import traced

DEFAULT_SCHEMA = """\
version: 1

types:
  person:
    default_path: people/
    name_field: name
    fields:
      name:
        type: string
        required: true
      alias:
        type: string

traits:
  due:
    type: date
  priority:
    type: enum
    values: [low, medium, high]
  highlight:
    type: bool
"""


class InitService:
    """Creates vault scaffolding; needs no existing Vault."""

    @traced
    def init_vault(self, root: Path, *, daily_directory: str = "daily") -> ServiceResult:
        op = "init_vault"
        created: list[str] = []
        kept: list[str] = []
        scaffold = {
            CONFIG_FILENAME: render_default_config(),
            SCHEMA_FILENAME: DEFAULT_SCHEMA,
        }
        try:
            root.mkdir(parents=True, exist_ok=True)
            for name, content in scaffold.items():
                target = root / name
                if target.exists():
                    kept.append(name)
                    continue
                atomic_write_text(target, content)
                created.append(name)
            (root / daily_directory).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return failure(op, "IO_ERROR", f"Cannot initialise vault at {root}: {exc}")

        db_path = index_path(root)
        try:
            index, rebuilt = IndexDatabase.open_with_rebuild(db_path)
            index.close()
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))

        data: dict[str, Any] = {
            "vault_root": str(root),
            "index_path": str(db_path),
            "files_created": created,
            "files_kept": kept,
            "index_rebuilt": rebuilt,
        }
        return ServiceResult(ok=True, op=op, data=data)
