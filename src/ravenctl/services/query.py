"""QueryService — read-only access to the index.

Reference resolution, point lookups and the typed queries behind the
``ravenctl resolve``, ``ravenctl stats`` and ``ravenctl query`` commands.
"""

from __future__ import annotations

from typing import Any

from ravenctl.domain.dates import daily_note_id, parse_date_ref
from ravenctl.infrastructure.database.engine import IndexDatabaseError
from ravenctl.services.base import BaseService, ServiceAbort
from ravenctl.services.result import ServiceResult, failure
from ravenctl.services.telemetry import traced


def _listing(op: str, items: list[dict[str, Any]], **extra: Any) -> ServiceResult:
    return ServiceResult(ok=True, op=op, data={**extra, "items": items, "count": len(items)})


class QueryService(BaseService):
    """Read-only queries over the vault index."""

    @traced
    def resolve(self, reference: str, *, allow_missing: bool = False) -> ServiceResult:
        """Resolve a raw reference to its canonical object ID."""
        try:
            result = self._resolve("resolve", reference, allow_missing=allow_missing)
        except ServiceAbort as exc:
            return exc.result
        return ServiceResult(ok=True, op="resolve", data=result.to_dict())

    @traced
    def stats(self) -> ServiceResult:
        try:
            stats = self._index("stats").stats()
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure("stats", "DATABASE_ERROR", str(exc))
        return ServiceResult(ok=True, op="stats", data=stats.to_dict())

    @traced
    def get(self, reference: str) -> ServiceResult:
        """Fetch one object (resolving *reference* first)."""
        op = "get"
        try:
            resolved = self._resolve(op, reference)
            obj = self._index(op).get_object(resolved.target_id)
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))
        if obj is None:
            # A literal file that was never indexed, or an unknown fragment.
            return failure(
                op,
                "NOT_FOUND",
                f"Object {resolved.target_id} is not indexed",
                detail={"object_id": resolved.target_id},
            )
        return ServiceResult(ok=True, op=op, data=obj)

    @traced
    def get_trait(self, trait_id: str) -> ServiceResult:
        op = "get_trait"
        try:
            trait = self._index(op).get_trait(trait_id)
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))
        if trait is None:
            return failure(op, "NOT_FOUND", f"Trait not found: {trait_id}", detail={"trait_id": trait_id})
        return ServiceResult(ok=True, op=op, data=trait)

    @traced
    def objects(self, object_type: str) -> ServiceResult:
        op = "query_objects"
        try:
            items = self._index(op).query_objects(object_type)
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))
        return _listing(op, items, type=object_type)

    @traced
    def traits(self, trait_type: str, *, value: str | None = None) -> ServiceResult:
        op = "query_traits"
        try:
            items = self._index(op).query_traits_by_type(trait_type, value)
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))
        return _listing(op, items, trait_type=trait_type, value=value)

    @traced
    def backlinks(self, reference: str) -> ServiceResult:
        """References pointing at *reference* or at any of its sections."""
        op = "backlinks"
        try:
            resolved = self._resolve(op, reference)
            items = self._index(op).backlinks(resolved.target_id)
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))
        return _listing(op, items, target_id=resolved.target_id)

    @traced
    def tags(self, tag: str | None = None) -> ServiceResult:
        op = "query_tags"
        try:
            items = self._index(op).query_tags(tag)
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))
        return _listing(op, items, tag=tag.lstrip("#") if tag else None)

    @traced
    def date(self, date_ref: str) -> ServiceResult:
        """Everything dated *date_ref* (ISO date or today/tomorrow/yesterday)."""
        op = "query_date"
        day = parse_date_ref(date_ref)
        if day is None:
            return failure(op, "VALIDATION_FAILED", f"Not a date: {date_ref!r}")
        try:
            items = self._index(op).query_date_index(day.isoformat())
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))
        return _listing(
            op,
            items,
            date=day.isoformat(),
            daily_note=daily_note_id(day, self._vault.daily_directory),
        )

    @traced
    def untyped(self) -> ServiceResult:
        """File objects that never declared a ``type``."""
        op = "untyped_pages"
        try:
            ids = self._index(op).untyped_pages()
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))
        return _listing(op, [{"id": object_id} for object_id in ids])
