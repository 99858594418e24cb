"""Database engine setup for SQLite with WAL mode.

SQLite is the persistence layer: WAL mode for concurrent readers, ACID
transactions for per-file index replacement. The index lives at
``{vault_root}/.raven/index.db``.

SQLAlchemy Core (not ORM) is used because ravenctl is a short-lived
CLI process — no benefit from session management or identity maps.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ravenctl.infrastructure.database.schema import SCHEMA_VERSION, meta, metadata

logger = logging.getLogger(__name__)

INDEX_DIRNAME = ".raven"
INDEX_FILENAME = "index.db"
REBUILD_HINT = "run `ravenctl reindex --full` to rebuild the index"


class IndexDatabaseError(Exception):
    """The index cannot be opened or queried; remedied by a rebuild."""


def index_path(vault_root: Path) -> Path:
    return vault_root / INDEX_DIRNAME / INDEX_FILENAME


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine with WAL mode enabled."""
    engine = create_engine(f"sqlite:///{db_path}", echo=False)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


def read_schema_version(engine: Engine) -> int | None:
    """Stored schema version, or None when the ``meta`` table is absent."""
    with engine.connect() as conn:
        if not engine.dialect.has_table(conn, meta.name):
            return None
        row = conn.execute(select(meta.c.value).where(meta.c.key == "schema_version")).first()
    if row is None:
        return None
    try:
        return int(row.value)
    except ValueError:
        return None


def init_database(db_path: Path) -> Engine:
    """Create the index file with all tables and stamp the schema version.

    Idempotent — safe to call on an existing, compatible index.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path)
    metadata.create_all(engine)
    with engine.begin() as conn:
        row = conn.execute(select(meta.c.key).where(meta.c.key == "schema_version")).first()
        if row is None:
            conn.execute(insert(meta).values(key="schema_version", value=str(SCHEMA_VERSION)))
    return engine


def _remove_database_files(db_path: Path) -> None:
    for suffix in ("", "-wal", "-shm", "-journal"):
        Path(f"{db_path}{suffix}").unlink(missing_ok=True)


def open_database(db_path: Path, *, rebuild: bool = False) -> tuple[Engine, bool]:
    """Open the index at *db_path*, returning ``(engine, rebuilt)``.

    A missing file is created fresh (not counted as a rebuild). An index
    with a different schema version, or one SQLite cannot read, is
    dropped and recreated when *rebuild* is True.

    Raises:
        IndexDatabaseError: If the index is incompatible and *rebuild* is
            False, or if it cannot be created at all.
    """
    try:
        if not db_path.exists():
            return init_database(db_path), False

        engine = create_db_engine(db_path)
        try:
            version = read_schema_version(engine)
        except SQLAlchemyError as exc:
            logger.warning("Index at %s is unreadable: %s", db_path, exc)
            version = None

        if version == SCHEMA_VERSION:
            metadata.create_all(engine)
            return engine, False

        engine.dispose()
        if not rebuild:
            msg = (
                f"Index schema version {version} is incompatible with "
                f"{SCHEMA_VERSION}; {REBUILD_HINT}"
            )
            raise IndexDatabaseError(msg)

        logger.info("Rebuilding index at %s (found version %s)", db_path, version)
        _remove_database_files(db_path)
        return init_database(db_path), True
    except (SQLAlchemyError, OSError) as exc:
        msg = f"Cannot open index at {db_path}: {exc}; {REBUILD_HINT}"
        raise IndexDatabaseError(msg) from exc
