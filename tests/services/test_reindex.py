"""Tests for ReindexService."""

from __future__ import annotations

import threading
from pathlib import Path

from sqlalchemy import update

from ravenctl.config.settings import RavenSettings
from ravenctl.infrastructure.database.engine import index_path, init_database
from ravenctl.infrastructure.database.schema import meta
from ravenctl.infrastructure.vault import Vault
from ravenctl.services.query import QueryService
from ravenctl.services.reindex import ReindexOptions, ReindexService
from tests.conftest import reindex, seed_people, touch_later, write_file


def _stats(vault: Vault) -> dict:
    result = QueryService(vault).stats()
    assert result.ok
    return result.data


class TestIncremental:
    def test_first_run_indexes_everything(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        data = reindex(vault)
        assert data["files_indexed"] == 2
        assert data["incremental"] is True
        assert data["objects"] == 4
        assert data["references"] == 1
        assert data["refs_resolved"] == 1
        assert data["refs_unresolved"] == 0

    def test_second_run_is_a_no_op(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        reindex(vault)
        before = _stats(vault)
        data = reindex(vault)
        assert data["files_indexed"] == 0
        assert data["files_skipped"] == 2
        assert _stats(vault) == before

    def test_changed_file_is_reindexed(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        reindex(vault)
        path = write_file(vault_root, "companies/acme.md", "---\ntype: company\nname: Acme\n---\n")
        touch_later(path)
        data = reindex(vault)
        assert data["files_indexed"] == 1
        assert data["files_skipped"] == 1

    def test_deleted_file_is_dropped(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        reindex(vault)
        (vault_root / "companies" / "acme.md").unlink()
        data = reindex(vault)
        assert data["files_deleted"] == 1
        assert data["refs_unresolved"] == 1
        assert vault.index.get_object("companies/acme") is None

    def test_full_reindexes_everything(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        reindex(vault)
        data = reindex(vault, full=True)
        assert data["files_indexed"] == 2
        assert data["incremental"] is False


class TestDryRun:
    def test_reports_without_writing(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        reindex(vault)
        before = _stats(vault)
        (vault_root / "companies" / "acme.md").unlink()
        write_file(vault_root, "inbox.md", "# Inbox\n")

        data = reindex(vault, dry_run=True)
        assert data["dry_run"] is True
        assert data["would_index"] == ["inbox.md"]
        assert data["would_delete"] == ["companies/acme.md"]
        assert data["files_indexed"] == 0
        assert _stats(vault) == before


class TestExclusions:
    def test_excluded_directory_is_purged(self, vault: Vault, vault_root: Path) -> None:
        write_file(vault_root, "archive/old.md", "# Old\n")
        reindex(vault)
        assert vault.index.get_object("archive/old") is not None
        vault.close()

        write_file(vault_root, "ravenctl.toml", '[vault]\nexclude_dirs = ["archive"]\n')
        fresh = Vault(RavenSettings.from_cli(vault_root=vault_root))
        try:
            data = reindex(fresh)
            assert data["files_deleted"] == 1
            assert fresh.index.get_object("archive/old") is None
        finally:
            fresh.close()


class TestErrors:
    def test_bad_file_is_reported_not_fatal(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        write_file(vault_root, "bad.md", "---\n- a\n- b\n---\n")
        result = ReindexService(vault).reindex()
        assert result.ok
        assert result.data["files_indexed"] == 2
        assert [e["file_path"] for e in result.data["errors"]] == ["bad.md"]
        assert any("bad.md" in w for w in result.warnings)

    def test_invalid_schema(self, vault: Vault, vault_root: Path) -> None:
        (vault_root / "schema.yaml").write_text("types: [oops", encoding="utf-8")
        result = ReindexService(vault).reindex()
        assert not result.ok
        assert result.error.code == "VALIDATION_FAILED"

    def test_cancelled_before_start(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        cancel = threading.Event()
        cancel.set()
        data = reindex(vault, cancel=cancel)
        assert data["cancelled"] is True
        assert data["files_indexed"] == 0
        assert data["refs_resolved"] == 0


class TestRebuild:
    def test_incompatible_index_forces_full(self, vault_root: Path) -> None:
        seed_people(vault_root)
        engine = init_database(index_path(vault_root))
        with engine.begin() as conn:
            conn.execute(update(meta).where(meta.c.key == "schema_version").values(value="0"))
        engine.dispose()

        v = Vault(RavenSettings.from_cli(vault_root=vault_root))
        try:
            data = reindex(v)
            assert data["schema_rebuilt"] is True
            assert data["incremental"] is False
            assert data["files_indexed"] == 2
            assert v.index_rebuilt is False
        finally:
            v.close()


class TestReindexFile:
    def test_indexes_one_file(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        result = ReindexService(vault).reindex_file("people/freya.md")
        assert result.ok
        assert result.data["objects"] == 2
        assert vault.index.get_object("companies/acme") is None

    def test_missing_file_is_removed(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        reindex(vault)
        (vault_root / "people" / "freya.md").unlink()
        result = ReindexService(vault).reindex_file("people/freya.md")
        assert result.ok
        assert result.data["removed"] is True
        assert vault.index.get_object("people/freya") is None

    def test_escape_rejected(self, vault: Vault) -> None:
        result = ReindexService(vault).reindex_file("../outside.md")
        assert not result.ok
        assert result.error.code == "VALIDATION_FAILED"


class TestReindexFiles:
    def test_one_resolution_pass_for_many_files(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        result = ReindexService(vault).reindex_files(["people/freya.md", "companies/acme.md"])
        assert result.ok
        assert [f["file_path"] for f in result.data["files"]] == ["people/freya.md", "companies/acme.md"]
        assert (result.data["refs_resolved"], result.data["refs_unresolved"]) == (1, 0)
        assert vault.index.get_object("companies/acme") is not None

    def test_scoped_resolution(self, vault: Vault, vault_root: Path) -> None:
        write_file(vault_root, "projects/plan.md", "# Plan\n\nAsk [[later]].\n")
        svc = ReindexService(vault)
        first = svc.reindex_files(["projects/plan.md"], resolve_all=False)
        assert (first.data["refs_resolved"], first.data["refs_unresolved"]) == (0, 1)

        write_file(vault_root, "later.md", "# Later\n")
        second = svc.reindex_files(["later.md"], resolve_all=False)
        # later.md holds no references, so plan.md's link is not revisited.
        assert (second.data["refs_resolved"], second.data["refs_unresolved"]) == (0, 0)
        assert vault.index.backlinks("later") == []

        assert svc.reindex_files([]).data["refs_resolved"] == 1
        assert len(vault.index.backlinks("later")) == 1

    def test_bad_file_is_a_warning(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        write_file(vault_root, "bad.md", "---\n- a\n- b\n---\n")
        result = ReindexService(vault).reindex_files(["bad.md", "people/freya.md", "../outside.md"])
        assert result.ok
        assert [f["file_path"] for f in result.data["files"]] == ["people/freya.md"]
        assert len(result.warnings) == 2
        assert result.warnings[0].startswith("reindex of bad.md failed: Cannot index bad.md")
        assert result.warnings[1].startswith("reindex of ../outside.md failed")
