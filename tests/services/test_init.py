"""Tests for InitService."""

from __future__ import annotations

from pathlib import Path

from ravenctl.config.discovery import CONFIG_FILENAME
from ravenctl.domain.schema import SCHEMA_FILENAME, parse_schema
from ravenctl.services.init import InitService


class TestInitVault:
    def test_scaffolds_a_new_vault(self, tmp_path: Path) -> None:
        root = tmp_path / "notes"
        result = InitService().init_vault(root)
        assert result.ok
        assert result.data["files_created"] == [CONFIG_FILENAME, SCHEMA_FILENAME]
        assert (root / "daily").is_dir()
        assert (root / ".raven" / "index.db").is_file()
        schema = parse_schema((root / SCHEMA_FILENAME).read_text(encoding="utf-8"))
        assert schema.name_field_for("person") == "name"

    def test_existing_files_are_kept(self, tmp_path: Path) -> None:
        (tmp_path / SCHEMA_FILENAME).write_text("types: {}\n", encoding="utf-8")
        result = InitService().init_vault(tmp_path, daily_directory="journal")
        assert result.data["files_kept"] == [SCHEMA_FILENAME]
        assert (tmp_path / SCHEMA_FILENAME).read_text(encoding="utf-8") == "types: {}\n"
        assert (tmp_path / "journal").is_dir()

    def test_rerun_is_harmless(self, tmp_path: Path) -> None:
        InitService().init_vault(tmp_path)
        result = InitService().init_vault(tmp_path)
        assert result.ok
        assert result.data["files_created"] == []
        assert result.data["index_rebuilt"] is False
