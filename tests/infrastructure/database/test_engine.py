"""Tests for index creation, versioning and rebuild."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import update

from ravenctl.infrastructure.database.engine import (
    IndexDatabaseError,
    init_database,
    open_database,
    read_schema_version,
)
from ravenctl.infrastructure.database.schema import SCHEMA_VERSION, meta
from ravenctl.infrastructure.index import IndexDatabase


def _stamp(db_path: Path, version: str) -> None:
    engine = init_database(db_path)
    with engine.begin() as conn:
        conn.execute(update(meta).where(meta.c.key == "schema_version").values(value=version))
    engine.dispose()


class TestOpenDatabase:
    def test_fresh_index_is_not_a_rebuild(self, tmp_path: Path) -> None:
        engine, rebuilt = open_database(tmp_path / ".raven" / "index.db")
        try:
            assert rebuilt is False
            assert read_schema_version(engine) == SCHEMA_VERSION
        finally:
            engine.dispose()

    def test_compatible_index_reopens(self, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        init_database(db_path).dispose()
        engine, rebuilt = open_database(db_path, rebuild=True)
        engine.dispose()
        assert rebuilt is False

    def test_incompatible_without_rebuild_raises(self, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        _stamp(db_path, "0")
        with pytest.raises(IndexDatabaseError, match="reindex --full"):
            open_database(db_path)

    def test_incompatible_with_rebuild(self, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        _stamp(db_path, "0")
        index, rebuilt = IndexDatabase.open_with_rebuild(db_path)
        try:
            assert rebuilt is True
            assert index.rebuilt is True
            assert read_schema_version(index.engine) == SCHEMA_VERSION
        finally:
            index.close()

    def test_garbage_file_is_rebuilt(self, tmp_path: Path) -> None:
        db_path = tmp_path / "index.db"
        db_path.write_bytes(b"this is not sqlite")
        index, rebuilt = IndexDatabase.open_with_rebuild(db_path)
        index.close()
        assert rebuilt is True
