"""IndexDatabase — the persistent, derived index of a vault.

One file's rows (objects, traits, refs, dates, tags and its mtime
watermark) are always replaced together inside a single transaction, so
a failure while indexing a file leaves that file's previous rows intact.

Every public method translates SQLAlchemy failures into
:class:`IndexDatabaseError`, whose message tells the caller to rebuild.
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

from sqlalchemy import bindparam, delete, func, insert, select, text, union, update
from sqlalchemy.exc import SQLAlchemyError

from ravenctl.domain.content import to_plain
from ravenctl.domain.dates import extract_date_string
from ravenctl.domain.links import strip_wikilink
from ravenctl.domain.paths import make_trait_id, normalize_rel_path
from ravenctl.domain.schema import effective_trait_value
from ravenctl.infrastructure.database.engine import REBUILD_HINT, IndexDatabaseError, open_database
from ravenctl.infrastructure.database.schema import (
    FILE_SCOPED_TABLES,
    date_index,
    files,
    objects,
    refs,
    tags,
    traits,
)
from ravenctl.infrastructure.resolver import ObjectEntry, ResolveOptions, Resolver

if TYPE_CHECKING:
    from datetime import date

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from ravenctl.domain.parser import Document
    from ravenctl.domain.schema import Schema

logger = logging.getLogger(__name__)

DEFAULT_RESOLVE_BATCH_SIZE = 750

_P = ParamSpec("_P")
_R = TypeVar("_R")


def _db_errors(method: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Re-raise SQLAlchemy errors as IndexDatabaseError with a rebuild hint."""

    @functools.wraps(method)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        try:
            return method(*args, **kwargs)
        except SQLAlchemyError as exc:
            msg = f"Index query failed in {method.__name__}: {exc}; {REBUILD_HINT}"
            raise IndexDatabaseError(msg) from exc

    return wrapper


@dataclass(frozen=True)
class IndexCounts:
    """Rows written for one document."""

    objects: int = 0
    traits: int = 0
    refs: int = 0


@dataclass(frozen=True)
class ResolveCounts:
    resolved: int = 0
    unresolved: int = 0


@dataclass(frozen=True)
class IndexStats:
    file_count: int = 0
    object_count: int = 0
    trait_count: int = 0
    ref_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "file_count": self.file_count,
            "object_count": self.object_count,
            "trait_count": self.trait_count,
            "ref_count": self.ref_count,
        }


def _now_iso() -> str:
    from datetime import UTC, datetime

    return datetime.now(UTC).isoformat()


def _as_prefix(prefix: str) -> str:
    p = normalize_rel_path(prefix)
    if p and not p.endswith("/"):
        p += "/"
    return p


def _object_row(row: Any) -> dict[str, Any]:
    data = dict(row)
    data["fields"] = json.loads(data.get("fields") or "{}")
    return data


class IndexDatabase:
    """Read/write access to the SQLite index.

    Construct with :meth:`open` or :meth:`open_with_rebuild`; the caller
    owns the handle and must :meth:`close` it.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        rebuilt: bool = False,
        resolve_batch_size: int = DEFAULT_RESOLVE_BATCH_SIZE,
    ) -> None:
        self._engine = engine
        self._rebuilt = rebuilt
        self._batch_size = max(1, resolve_batch_size)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, db_path: Path, *, resolve_batch_size: int = DEFAULT_RESOLVE_BATCH_SIZE) -> IndexDatabase:
        """Open an existing compatible index (or create a fresh one).

        Raises:
            IndexDatabaseError: If the on-disk schema version is incompatible.
        """
        engine, _ = open_database(db_path, rebuild=False)
        return cls(engine, resolve_batch_size=resolve_batch_size)

    @classmethod
    def open_with_rebuild(
        cls,
        db_path: Path,
        *,
        resolve_batch_size: int = DEFAULT_RESOLVE_BATCH_SIZE,
    ) -> tuple[IndexDatabase, bool]:
        """Open the index, dropping and recreating it if incompatible.

        Returns ``(index, rebuilt)``.
        """
        engine, rebuilt = open_database(db_path, rebuild=True)
        return cls(engine, rebuilt=rebuilt, resolve_batch_size=resolve_batch_size), rebuilt

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def rebuilt(self) -> bool:
        """True if opening this index dropped an incompatible one."""
        return self._rebuilt

    def close(self) -> None:
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _purge_file(conn: Connection, file_path: str) -> None:
        for table in FILE_SCOPED_TABLES:
            conn.execute(delete(table).where(table.c.file_path == file_path))

    @_db_errors
    def index_document(self, doc: Document, schema: Schema | None, mtime: float) -> IndexCounts:
        """Replace every row belonging to ``doc.file_path`` with *doc*'s contents."""
        file_path = doc.file_path
        indexed_at = _now_iso()
        object_count = trait_count = ref_count = 0

        with self._engine.begin() as conn:
            prior = conn.execute(select(files.c.mtime).where(files.c.file_path == file_path)).first()
            self._purge_file(conn, file_path)

            seen_ids: set[str] = set()
            for obj in doc.objects:
                if obj.id in seen_ids:
                    logger.warning("Duplicate object id %s in %s; skipped", obj.id, file_path)
                    continue
                seen_ids.add(obj.id)
                fields = to_plain(obj.fields)
                alias = fields.get("alias")
                name_value = None
                name_field = schema.name_field_for(obj.type) if schema else None
                if name_field and fields.get(name_field) is not None:
                    name_value = strip_wikilink(str(fields[name_field]))
                conn.execute(
                    insert(objects).values(
                        id=obj.id,
                        file_path=file_path,
                        type=obj.type,
                        heading=obj.heading,
                        heading_level=obj.heading_level,
                        fields=json.dumps(fields, sort_keys=True),
                        line_start=obj.line_start,
                        line_end=obj.line_end,
                        parent_id=obj.parent_id,
                        alias=alias if isinstance(alias, str) and alias.strip() else None,
                        name_value=name_value,
                    )
                )
                object_count += 1
                for field_name, value in fields.items():
                    day = extract_date_string(value)
                    if day:
                        conn.execute(
                            insert(date_index).values(
                                date=day,
                                source_type="object",
                                source_id=obj.id,
                                field_name=field_name,
                                file_path=file_path,
                            )
                        )

            # Ordinals count every occurrence, declared in the schema or not.
            for ordinal, trait in enumerate(doc.traits):
                if schema is not None and trait.trait_type not in schema.traits:
                    continue
                trait_id = make_trait_id(file_path, ordinal)
                value = effective_trait_value(trait.value, trait.trait_type, schema)
                conn.execute(
                    insert(traits).values(
                        id=trait_id,
                        file_path=file_path,
                        parent_object_id=trait.parent_object_id,
                        trait_type=trait.trait_type,
                        value=value,
                        raw_value=trait.value,
                        content=trait.content,
                        line_number=trait.line,
                        span_start=trait.start,
                        span_end=trait.end,
                    )
                )
                trait_count += 1
                day = extract_date_string(value) if value else None
                if day:
                    conn.execute(
                        insert(date_index).values(
                            date=day,
                            source_type="trait",
                            source_id=trait_id,
                            field_name=trait.trait_type,
                            file_path=file_path,
                        )
                    )

            seen_refs: set[tuple[str, str]] = set()
            for ref in doc.refs:
                seen_refs.add((ref.source_id, ref.target_raw))
                conn.execute(
                    insert(refs).values(
                        source_id=ref.source_id,
                        target_raw=ref.target_raw,
                        display_text=ref.display_text,
                        file_path=file_path,
                        line_number=ref.line,
                        position_start=ref.start,
                        position_end=ref.end,
                    )
                )
                ref_count += 1

            if schema is not None:
                for obj in doc.objects:
                    for field_name in schema.ref_fields_for(obj.type):
                        raw = obj.fields.get(field_name)
                        values = raw if isinstance(raw, list) else [raw]
                        for value in values:
                            if value is None or not str(value).strip():
                                continue
                            target = strip_wikilink(str(value))
                            if (obj.id, target) in seen_refs:
                                continue
                            seen_refs.add((obj.id, target))
                            conn.execute(
                                insert(refs).values(
                                    source_id=obj.id,
                                    target_raw=target,
                                    file_path=file_path,
                                    line_number=obj.line_start,
                                )
                            )
                            ref_count += 1

            for tag in doc.tags:
                conn.execute(
                    insert(tags).values(
                        tag=tag.tag,
                        object_id=tag.object_id,
                        file_path=file_path,
                        line_number=tag.line,
                    )
                )

            watermark = max(mtime, prior.mtime) if prior is not None else mtime
            conn.execute(
                insert(files).values(file_path=file_path, mtime=watermark, indexed_at=indexed_at)
            )

        return IndexCounts(objects=object_count, traits=trait_count, refs=ref_count)

    @_db_errors
    def remove_file(self, file_path: str) -> None:
        with self._engine.begin() as conn:
            self._purge_file(conn, normalize_rel_path(file_path))

    @_db_errors
    def files_with_prefix(self, prefix: str) -> list[str]:
        """Distinct indexed file paths under *prefix*."""
        p = _as_prefix(prefix)
        if not p:
            return []
        stmt = union(
            select(files.c.file_path).where(files.c.file_path.startswith(p, autoescape=True)),
            select(objects.c.file_path).where(objects.c.file_path.startswith(p, autoescape=True)),
        )
        with self._engine.connect() as conn:
            return sorted(row[0] for row in conn.execute(stmt))

    @_db_errors
    def remove_files_with_prefix(self, prefix: str) -> int:
        """Delete every row for files under *prefix*; returns the file count."""
        paths = self.files_with_prefix(prefix)
        if not paths:
            return 0
        p = _as_prefix(prefix)
        with self._engine.begin() as conn:
            for table in FILE_SCOPED_TABLES:
                conn.execute(delete(table).where(table.c.file_path.startswith(p, autoescape=True)))
        return len(paths)

    @_db_errors
    def clear_all(self) -> None:
        """Delete every indexed row (the schema version is kept)."""
        with self._engine.begin() as conn:
            for table in FILE_SCOPED_TABLES:
                conn.execute(delete(table))

    @_db_errors
    def find_deleted_files(self, vault_root: Path) -> list[str]:
        """Indexed paths whose file no longer exists (no mutation)."""
        return [p for p in self.all_indexed_file_paths() if not (vault_root / p).exists()]

    @_db_errors
    def remove_deleted_files(self, vault_root: Path) -> list[str]:
        """Stat every indexed path and drop rows for the ones that are gone."""
        removed = self.find_deleted_files(vault_root)
        if removed:
            with self._engine.begin() as conn:
                for file_path in removed:
                    self._purge_file(conn, file_path)
        return removed

    @_db_errors
    def resolve_references(
        self,
        daily_directory: str,
        *,
        vault_root: Path | None = None,
        today: date | None = None,
        file_paths: Iterable[str] | None = None,
    ) -> ResolveCounts:
        """Resolve stored references and write back their target IDs.

        With *file_paths* only the references held by those files are
        resolved; otherwise every reference is. Ambiguous and unmatched
        references are stored with a NULL target and counted as
        unresolved.
        """
        scope = None if file_paths is None else sorted(set(file_paths))
        if scope == []:
            return ResolveCounts(resolved=0, unresolved=0)
        resolver = self.resolver(
            ResolveOptions(vault_root=vault_root, daily_directory=daily_directory, today=today)
        )
        cache: dict[str, str | None] = {}
        resolved = unresolved = 0
        last_id = 0
        query = select(refs.c.id, refs.c.target_raw)
        if scope is not None:
            query = query.where(refs.c.file_path.in_(scope))

        while True:
            with self._engine.connect() as conn:
                batch = conn.execute(
                    query.where(refs.c.id > last_id)
                    .order_by(refs.c.id)
                    .limit(self._batch_size)
                ).all()
            if not batch:
                break

            updates: list[dict[str, Any]] = []
            for row in batch:
                if row.target_raw not in cache:
                    result = resolver.resolve(row.target_raw)
                    cache[row.target_raw] = result.target_id if result.found else None
                target = cache[row.target_raw]
                if target is None:
                    unresolved += 1
                else:
                    resolved += 1
                updates.append({"ref_id": row.id, "resolved_target": target})
            last_id = batch[-1].id

            with self._engine.begin() as conn:
                conn.execute(
                    update(refs)
                    .where(refs.c.id == bindparam("ref_id"))
                    .values(target_id=bindparam("resolved_target")),
                    updates,
                )

        return ResolveCounts(resolved=resolved, unresolved=unresolved)

    @_db_errors
    def analyze(self) -> None:
        """Refresh SQLite query-planner statistics."""
        with self._engine.begin() as conn:
            conn.execute(text("ANALYZE"))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @_db_errors
    def get_file_mtime(self, file_path: str) -> float:
        """Indexed mtime watermark for *file_path*, ``0.0`` if not indexed."""
        with self._engine.connect() as conn:
            row = conn.execute(
                select(files.c.mtime).where(files.c.file_path == normalize_rel_path(file_path))
            ).first()
        return float(row.mtime) if row is not None else 0.0

    @_db_errors
    def all_indexed_file_paths(self) -> list[str]:
        with self._engine.connect() as conn:
            rows = conn.execute(select(files.c.file_path).order_by(files.c.file_path))
            return [row.file_path for row in rows]

    @_db_errors
    def stats(self) -> IndexStats:
        with self._engine.connect() as conn:

            def _count(table: Any) -> int:
                return int(conn.execute(select(func.count()).select_from(table)).scalar_one())

            return IndexStats(
                file_count=_count(files),
                object_count=_count(objects),
                trait_count=_count(traits),
                ref_count=_count(refs),
            )

    @_db_errors
    def get_object(self, object_id: str) -> dict[str, Any] | None:
        with self._engine.connect() as conn:
            row = conn.execute(select(objects).where(objects.c.id == object_id)).mappings().first()
        return _object_row(row) if row is not None else None

    @_db_errors
    def get_trait(self, trait_id: str) -> dict[str, Any] | None:
        with self._engine.connect() as conn:
            row = conn.execute(select(traits).where(traits.c.id == trait_id)).mappings().first()
        return dict(row) if row is not None else None

    @_db_errors
    def query_objects(self, object_type: str) -> list[dict[str, Any]]:
        stmt = select(objects).where(objects.c.type == object_type).order_by(objects.c.id)
        with self._engine.connect() as conn:
            return [_object_row(r) for r in conn.execute(stmt).mappings()]

    @_db_errors
    def query_traits_by_type(self, trait_type: str, value: str | None = None) -> list[dict[str, Any]]:
        stmt = select(traits).where(traits.c.trait_type == trait_type)
        if value is not None:
            stmt = stmt.where(traits.c.value == value)
        stmt = stmt.order_by(traits.c.file_path, traits.c.line_number, traits.c.span_start)
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    @_db_errors
    def query_date_index(self, day: str) -> list[dict[str, Any]]:
        stmt = (
            select(date_index)
            .where(date_index.c.date == day)
            .order_by(date_index.c.file_path, date_index.c.source_id)
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    @_db_errors
    def query_tags(self, tag: str | None = None) -> list[dict[str, Any]]:
        """Objects carrying *tag*, or every tag with its object count."""
        with self._engine.connect() as conn:
            if tag is None:
                stmt = (
                    select(tags.c.tag, func.count(func.distinct(tags.c.object_id)).label("count"))
                    .group_by(tags.c.tag)
                    .order_by(tags.c.tag)
                )
                return [dict(r) for r in conn.execute(stmt).mappings()]
            stmt = (
                select(tags.c.tag, tags.c.object_id, tags.c.file_path)
                .where(tags.c.tag == tag.lstrip("#"))
                .distinct()
                .order_by(tags.c.object_id)
            )
            return [dict(r) for r in conn.execute(stmt).mappings()]

    @_db_errors
    def backlinks(self, target_id: str) -> list[dict[str, Any]]:
        """References resolved to *target_id* or to one of its sections."""
        stmt = (
            select(refs)
            .where(
                (refs.c.target_id == target_id)
                | refs.c.target_id.startswith(f"{target_id}#", autoescape=True)
            )
            .order_by(refs.c.file_path, refs.c.line_number, refs.c.position_start)
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    @_db_errors
    def untyped_pages(self) -> list[str]:
        stmt = (
            select(objects.c.id)
            .where(objects.c.type == "page", objects.c.parent_id.is_(None))
            .order_by(objects.c.id)
        )
        with self._engine.connect() as conn:
            return [row.id for row in conn.execute(stmt)]

    @_db_errors
    def resolver(self, options: ResolveOptions | None = None) -> Resolver:
        """A :class:`Resolver` over the current object table."""
        stmt = select(
            objects.c.id,
            objects.c.file_path,
            objects.c.type,
            objects.c.alias,
            objects.c.name_value,
            objects.c.parent_id,
        )
        with self._engine.connect() as conn:
            entries = [
                ObjectEntry(
                    id=row.id,
                    file_path=row.file_path,
                    type=row.type,
                    alias=row.alias,
                    name_value=row.name_value,
                    parent_id=row.parent_id,
                )
                for row in conn.execute(stmt)
            ]
        return Resolver(entries, options)
