"""TraitBulkService — rewrite many ``@trait(value)`` annotations at once.

Preview and apply run the same planning function, so a preview always
predicts exactly what apply writes:

- A trait whose effective value already equals the target is
  ``skipped`` and its file is not touched.
- Otherwise the annotation span on the recorded line is replaced with
  ``@type(new)``; a missing line or annotation is an ``error``.
- Records are grouped by file; each file is read once and (on apply)
  written once, atomically. A failed write turns that file's
  ``modified`` results into ``error``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from ravenctl.domain.links import mask_inline_code
from ravenctl.domain.schema import Schema, effective_trait_value
from ravenctl.domain.traits import find_trait_on_line, format_trait, replace_span
from ravenctl.infrastructure.database.engine import IndexDatabaseError
from ravenctl.infrastructure.filesystem import atomic_write_text, read_text
from ravenctl.services._helpers import plural
from ravenctl.services.base import BaseService, ServiceAbort
from ravenctl.services.result import ServiceResult, failure
from ravenctl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

STATUS_MODIFIED = "modified"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"

SKIP_REASON = "already has target value"


@dataclass(frozen=True)
class TraitRecord:
    """One trait occurrence selected for update."""

    id: str
    file_path: str
    line: int
    trait_type: str
    value: str | None
    span_start: int | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> TraitRecord:
        """Build from an index ``traits`` row."""
        return cls(
            id=row["id"],
            file_path=row["file_path"],
            line=row["line_number"],
            trait_type=row["trait_type"],
            value=row["value"],
            span_start=row.get("span_start"),
        )


@dataclass
class TraitUpdateItem:
    id: str
    file_path: str
    line: int
    status: str
    old_value: str | None
    new_value: str
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def plan_file(
    content: str,
    records: list[TraitRecord],
    new_value: str,
    schema: Schema | None = None,
) -> tuple[list[TraitUpdateItem], str | None]:
    """Plan updates for one file's records.

    A bare trait is compared by its *schema* default. Returns the
    per-record items and the rewritten content (None when no record in
    the file is modified).
    """
    lines = content.split("\n")
    items: dict[str, TraitUpdateItem] = {}
    changed = False

    # Right-to-left within a line keeps earlier spans valid after a rewrite.
    ordered = sorted(records, key=lambda r: (r.line, -(r.span_start or 0)))
    for rec in ordered:
        current = effective_trait_value(rec.value, rec.trait_type, schema)
        item = TraitUpdateItem(
            id=rec.id,
            file_path=rec.file_path,
            line=rec.line,
            status=STATUS_MODIFIED,
            old_value=current,
            new_value=new_value,
        )
        items[rec.id] = item

        if current == new_value:
            item.status = STATUS_SKIPPED
            item.reason = SKIP_REASON
            continue
        if rec.line < 1 or rec.line > len(lines):
            item.status = STATUS_ERROR
            item.reason = f"line {rec.line} out of range"
            continue

        raw = lines[rec.line - 1]
        match = find_trait_on_line(mask_inline_code(raw), rec.trait_type, start=rec.span_start)
        if match is None:
            item.status = STATUS_ERROR
            item.reason = f"@{rec.trait_type} not found on line {rec.line}"
            continue

        lines[rec.line - 1] = replace_span(
            raw, match.start, match.end, format_trait(rec.trait_type, new_value)
        )
        changed = True

    ordered_items = [items[rec.id] for rec in records if rec.id in items]
    return ordered_items, "\n".join(lines) if changed else None


class TraitBulkService(BaseService):
    """Two-phase (preview/apply) bulk trait value updates."""

    @traced
    def preview(self, records: Iterable[TraitRecord], new_value: str) -> ServiceResult:
        """Plan the update without writing anything."""
        return self._run(list(records), new_value, confirm=False)

    @traced
    def apply(self, records: Iterable[TraitRecord], new_value: str) -> ServiceResult:
        """Plan and write the update."""
        return self._run(list(records), new_value, confirm=True)

    @traced
    def update(
        self,
        trait_type: str,
        new_value: str,
        *,
        where_value: str | None = None,
        ids: Iterable[str] = (),
        confirm: bool = False,
    ) -> ServiceResult:
        """Select traits from the index, then preview or apply."""
        op = "trait_update"
        wanted = list(ids)
        try:
            index = self._index(op)
            if wanted:
                rows = []
                for trait_id in wanted:
                    row = index.get_trait(trait_id)
                    if row is None:
                        return failure(
                            op, "NOT_FOUND", f"Trait not found: {trait_id}", detail={"trait_id": trait_id}
                        )
                    if row["trait_type"] != trait_type:
                        return failure(
                            op,
                            "VALIDATION_FAILED",
                            f"Trait {trait_id} is @{row['trait_type']}, not @{trait_type}",
                        )
                    rows.append(row)
            else:
                rows = index.query_traits_by_type(trait_type, where_value)
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))

        records = [TraitRecord.from_row(row) for row in rows]
        return self._run(records, new_value, confirm=confirm, trait_type=trait_type)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        records: list[TraitRecord],
        new_value: str,
        *,
        confirm: bool,
        trait_type: str | None = None,
    ) -> ServiceResult:
        try:
            schema = self._schema("trait_update")
        except ServiceAbort as exc:
            return exc.result

        by_file: dict[str, list[TraitRecord]] = defaultdict(list)
        for rec in records:
            by_file[rec.file_path].append(rec)

        results: list[TraitUpdateItem] = []
        pending: dict[str, str] = {}
        warnings: list[str] = []

        with trace_span("plan"):
            for file_path, file_records in by_file.items():
                items, new_content = self._plan_path(file_path, file_records, new_value, schema)
                results.extend(items)
                if new_content is not None:
                    pending[file_path] = new_content

        written: list[str] = []
        if confirm:
            with trace_span("write") as span:
                for file_path, new_content in pending.items():
                    try:
                        atomic_write_text(self._vault.abs_path(file_path), new_content)
                    except (OSError, ValueError) as exc:
                        logger.warning("Cannot write %s: %s", file_path, exc)
                        for item in results:
                            if item.file_path == file_path and item.status == STATUS_MODIFIED:
                                item.status = STATUS_ERROR
                                item.reason = f"write failed: {exc}"
                        continue
                    written.append(file_path)
                if span:
                    span.count("files_written", len(written))
            if written:
                self._reindex_touched(written, warnings)

        modified = sum(1 for i in results if i.status == STATUS_MODIFIED)
        skipped = sum(1 for i in results if i.status == STATUS_SKIPPED)
        errors = sum(1 for i in results if i.status == STATUS_ERROR)
        if errors:
            warnings.append(f"{plural(errors, 'trait')} could not be updated")

        data: dict[str, Any] = {
            "trait_type": trait_type,
            "new_value": new_value,
            "confirm": confirm,
            "total": len(results),
            "modified": modified,
            "skipped": skipped,
            "errors": errors,
            "results": [i.to_dict() for i in results],
        }
        return ServiceResult(ok=True, op="trait_update", data=data, warnings=warnings)

    def _plan_path(
        self,
        file_path: str,
        records: list[TraitRecord],
        new_value: str,
        schema: Schema | None,
    ) -> tuple[list[TraitUpdateItem], str | None]:
        """Read one file and plan its records (protected or unreadable -> error)."""
        reason: str | None = None
        content = ""
        if self._vault.is_protected(file_path):
            reason = f"protected path: {file_path}"
        else:
            try:
                content = read_text(self._vault.abs_path(file_path))
            except (OSError, UnicodeDecodeError, ValueError) as exc:
                reason = f"cannot read file: {exc}"

        if reason is not None:
            items = []
            for rec in records:
                current = effective_trait_value(rec.value, rec.trait_type, schema)
                skip = current == new_value
                items.append(
                    TraitUpdateItem(
                        id=rec.id,
                        file_path=rec.file_path,
                        line=rec.line,
                        status=STATUS_SKIPPED if skip else STATUS_ERROR,
                        old_value=current,
                        new_value=new_value,
                        reason=SKIP_REASON if skip else reason,
                    )
                )
            return items, None
        return plan_file(content, records, new_value, schema)
