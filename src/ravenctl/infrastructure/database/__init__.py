"""SQLite index engine and schema via SQLAlchemy Core."""

from ravenctl.infrastructure.database.engine import (
    IndexDatabaseError,
    create_db_engine,
    index_path,
    init_database,
    open_database,
)
from ravenctl.infrastructure.database.schema import (
    SCHEMA_VERSION,
    date_index,
    files,
    meta,
    metadata,
    objects,
    refs,
    tags,
    traits,
)

__all__ = [
    "SCHEMA_VERSION",
    "IndexDatabaseError",
    "create_db_engine",
    "date_index",
    "files",
    "index_path",
    "init_database",
    "meta",
    "metadata",
    "objects",
    "open_database",
    "refs",
    "tags",
    "traits",
]
