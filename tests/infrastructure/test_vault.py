"""Tests for the Vault repository and file transactions."""

from __future__ import annotations

from pathlib import Path

import pytest

from ravenctl.config.settings import RavenSettings
from ravenctl.domain.schema import SchemaError
from ravenctl.infrastructure.vault import Vault
from tests.conftest import write_file


class TestPaths:
    def test_builtin_and_trash_protected(self, vault: Vault) -> None:
        assert vault.is_protected(".raven/index.db")
        assert vault.is_protected(".trash/old.md")
        assert not vault.is_protected("people/freya.md")

    def test_escape_counts_as_protected(self, vault: Vault) -> None:
        assert vault.is_protected("../elsewhere.md")

    def test_configured_prefixes(self, vault_root: Path) -> None:
        write_file(vault_root, "ravenctl.toml", "[vault]\nprotected_prefixes = [\"templates\"]\n")
        v = Vault(RavenSettings.from_cli(vault_root=vault_root))
        assert v.is_protected("templates/meeting.md")
        assert "templates/" in v.protected_prefixes

    def test_excluded_prefixes(self, vault_root: Path) -> None:
        write_file(vault_root, "ravenctl.toml", "[vault]\nexclude_dirs = [\"attachments/\"]\n")
        v = Vault(RavenSettings.from_cli(vault_root=vault_root))
        assert v.excluded_prefixes == [".trash", "attachments"]

    def test_abs_path_rejects_escape(self, vault: Vault) -> None:
        with pytest.raises(ValueError):
            vault.abs_path("../x.md")


class TestSchema:
    def test_schema_loaded_lazily(self, vault: Vault) -> None:
        assert vault.schema is not None
        assert vault.schema.name_field_for("person") == "name"

    def test_missing_schema(self, tmp_path: Path) -> None:
        v = Vault(RavenSettings.from_cli(vault_root=tmp_path))
        assert v.schema is None

    def test_invalid_schema(self, vault_root: Path) -> None:
        (vault_root / "schema.yaml").write_text("types: [oops", encoding="utf-8")
        v = Vault(RavenSettings.from_cli(vault_root=vault_root))
        with pytest.raises(SchemaError):
            _ = v.schema


class TestFileTransaction:
    def test_commit(self, vault: Vault, vault_root: Path) -> None:
        with vault.file_transaction() as txn:
            txn.write_file(vault_root / "new.md", "# New\n")
            assert txn.touched == ["new.md"]
        assert (vault_root / "new.md").read_text(encoding="utf-8") == "# New\n"

    def test_rollback_restores_everything(self, vault: Vault, vault_root: Path) -> None:
        existing = write_file(vault_root, "a.md", "original\n")
        moved = write_file(vault_root, "b.md", "b\n")

        with pytest.raises(RuntimeError), vault.file_transaction() as txn:
            txn.write_file(existing, "changed\n")
            txn.write_file(vault_root / "created.md", "new\n")
            txn.move_file(moved, vault_root / "sub" / "b.md")
            raise RuntimeError("boom")

        assert existing.read_text(encoding="utf-8") == "original\n"
        assert not (vault_root / "created.md").exists()
        assert moved.read_text(encoding="utf-8") == "b\n"
        assert not (vault_root / "sub" / "b.md").exists()

    def test_read_content(self, vault: Vault, vault_root: Path) -> None:
        path = write_file(vault_root, "p.md", "---\nname: P\n---\nbody\n")
        with vault.file_transaction() as txn:
            fm, body = txn.read_content(path)
        assert fm["name"] == "P"
        assert body == "body\n"
