"""SQLAlchemy Core table definitions for the vault index.

Bump :data:`SCHEMA_VERSION` whenever a table changes shape. An index
written with another version is dropped and rebuilt from files rather
than migrated.
"""

from __future__ import annotations

from sqlalchemy import (
    REAL,
    Column,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
)

SCHEMA_VERSION = 1

metadata = MetaData()

meta = Table(
    "meta",
    metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
)

# One row per indexed file: the mtime watermark.
files = Table(
    "files",
    metadata,
    Column("file_path", Text, primary_key=True),
    Column("mtime", REAL, nullable=False),
    Column("indexed_at", Text, nullable=False),
)

objects = Table(
    "objects",
    metadata,
    Column("id", Text, primary_key=True),
    Column("file_path", Text, nullable=False),
    Column("type", Text, nullable=False),
    Column("heading", Text),
    Column("heading_level", Integer),
    Column("fields", Text, nullable=False, default="{}"),  # JSON object
    Column("line_start", Integer, nullable=False),
    Column("line_end", Integer, nullable=False),
    Column("parent_id", Text),
    Column("alias", Text),
    Column("name_value", Text),  # value of the type's schema name_field
)

traits = Table(
    "traits",
    metadata,
    Column("id", Text, primary_key=True),  # <file_path>:trait:<ordinal>
    Column("file_path", Text, nullable=False),
    Column("parent_object_id", Text, nullable=False),
    Column("trait_type", Text, nullable=False),
    Column("value", Text),  # effective value (explicit or schema default)
    Column("raw_value", Text),  # value as written, NULL for bare traits
    Column("content", Text, nullable=False),
    Column("line_number", Integer, nullable=False),
    Column("span_start", Integer, nullable=False),
    Column("span_end", Integer, nullable=False),
)

refs = Table(
    "refs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source_id", Text, nullable=False),
    Column("target_id", Text),  # filled by the resolution sweep
    Column("target_raw", Text, nullable=False),
    Column("display_text", Text),
    Column("file_path", Text, nullable=False),
    Column("line_number", Integer),
    Column("position_start", Integer),
    Column("position_end", Integer),
)

date_index = Table(
    "date_index",
    metadata,
    Column("date", Text, nullable=False),
    Column("source_type", Text, nullable=False),  # object | trait
    Column("source_id", Text, nullable=False),
    Column("field_name", Text, nullable=False),
    Column("file_path", Text, nullable=False),
)

tags = Table(
    "tags",
    metadata,
    Column("tag", Text, nullable=False),
    Column("object_id", Text, nullable=False),
    Column("file_path", Text, nullable=False),
    Column("line_number", Integer),
)

# Every per-file table, in the order rows are purged.
FILE_SCOPED_TABLES = (objects, traits, refs, date_index, tags, files)

Index("idx_objects_file", objects.c.file_path)
Index("idx_objects_type", objects.c.type)
Index("idx_objects_alias", objects.c.alias)
Index("idx_objects_name_value", objects.c.name_value)
Index("idx_traits_file", traits.c.file_path)
Index("idx_traits_type_value", traits.c.trait_type, traits.c.value)
Index("idx_refs_file", refs.c.file_path)
Index("idx_refs_target", refs.c.target_id)
Index("idx_refs_source", refs.c.source_id)
Index("idx_date_index_date", date_index.c.date)
Index("idx_date_index_file", date_index.c.file_path)
Index("idx_tags_tag", tags.c.tag)
Index("idx_tags_file", tags.c.file_path)
