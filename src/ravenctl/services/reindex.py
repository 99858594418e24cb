"""ReindexService — keep the index in sync with the vault's files.

Full mode clears every row and indexes every walked file. Incremental
mode drops rows for files that vanished and only re-parses files whose
mtime is newer than the stored watermark, so running it twice in a row
indexes nothing the second time.

Every run purges rows under the trash directory and excluded
directories, and (unless dry-run or cancelled) finishes with a single
reference-resolution sweep and ``ANALYZE``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ravenctl.domain.paths import normalize_rel_path
from ravenctl.infrastructure.database.engine import IndexDatabaseError
from ravenctl.infrastructure.walker import WalkResult, read_and_parse, walk_vault
from ravenctl.services.base import BaseService, ServiceAbort
from ravenctl.services.result import ServiceResult, failure
from ravenctl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReindexOptions:
    """Per-run reindex options."""

    full: bool = False
    dry_run: bool = False
    cancel: threading.Event | None = None


def _under(rel_path: str, prefixes: list[str]) -> bool:
    return any(rel_path == p or rel_path.startswith(p + "/") for p in prefixes)


class ReindexService(BaseService):
    """Walks the vault and maintains the index."""

    @traced
    def reindex(self, options: ReindexOptions | None = None) -> ServiceResult:
        """Bring the index up to date with the vault."""
        opts = options or ReindexOptions()
        op = "reindex"
        try:
            index = self._index(op)
            schema = self._schema(op)
        except ServiceAbort as exc:
            return exc.result

        rebuilt = self._vault.index_rebuilt
        full = opts.full or rebuilt
        root = self._vault.root
        excluded = self._vault.excluded_prefixes

        data: dict[str, Any] = {
            "files_indexed": 0,
            "files_skipped": 0,
            "files_deleted": 0,
            "objects": 0,
            "traits": 0,
            "references": 0,
            "schema_rebuilt": rebuilt,
            "incremental": not full,
            "refs_resolved": 0,
            "refs_unresolved": 0,
            "errors": [],
            "dry_run": opts.dry_run,
            "cancelled": False,
        }
        warnings: list[str] = []

        if opts.dry_run:
            return self._dry_run(data, full=full, excluded=excluded, cancel=opts.cancel)

        try:
            with trace_span("cleanup") as span:
                if full:
                    index.clear_all()
                for prefix in excluded:
                    data["files_deleted"] += index.remove_files_with_prefix(prefix)
                if not full:
                    removed = index.remove_deleted_files(root)
                    data["files_deleted"] += len(removed)
                if span:
                    span.count("files_deleted", data["files_deleted"])
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))

        def stale(rel_path: str, mtime: float) -> bool:
            try:
                return mtime > index.get_file_mtime(rel_path)
            except IndexDatabaseError:
                return True

        try:
            with trace_span("index_files") as span:
                walk = walk_vault(
                    root, exclude_dirs=excluded, cancel=opts.cancel, select=None if full else stale
                )
                for walked in walk:
                    if walked.skipped:
                        data["files_skipped"] += 1
                        continue
                    self._index_walked(walked, data, warnings, schema=schema)
                if span:
                    span.count("files_indexed", data["files_indexed"])
            data["cancelled"] = opts.cancel is not None and opts.cancel.is_set()
        except OSError as exc:
            return failure(op, "IO_ERROR", f"Cannot walk vault {root}: {exc}")

        if not data["cancelled"]:
            try:
                with trace_span("resolve_references"):
                    counts = index.resolve_references(self._vault.daily_directory, vault_root=root)
                    index.analyze()
            except IndexDatabaseError as exc:
                return failure(op, "DATABASE_ERROR", str(exc))
            data["refs_resolved"] = counts.resolved
            data["refs_unresolved"] = counts.unresolved
            if full:
                self._vault.acknowledge_rebuild()

        logger.info(
            "Reindex done: %d indexed, %d skipped, %d deleted, %d errors",
            data["files_indexed"],
            data["files_skipped"],
            data["files_deleted"],
            len(data["errors"]),
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    def _index_walked(
        self,
        result: WalkResult,
        data: dict[str, Any],
        warnings: list[str],
        *,
        schema: Any,
    ) -> None:
        """Store one walked file; per-file problems land in ``data["errors"]``."""
        index = self._vault.index
        if result.document is None:
            self._record_error(result.relative_path, result.error or "unreadable", data, warnings)
            return

        try:
            counts = index.index_document(result.document, schema, result.mtime)
        except IndexDatabaseError as exc:
            self._record_error(result.relative_path, str(exc), data, warnings)
            return

        data["files_indexed"] += 1
        data["objects"] += counts.objects
        data["traits"] += counts.traits
        data["references"] += counts.refs

    @staticmethod
    def _record_error(rel_path: str, message: str, data: dict[str, Any], warnings: list[str]) -> None:
        logger.warning("Cannot index %s: %s", rel_path, message)
        data["errors"].append({"file_path": rel_path, "error": message})
        warnings.append(f"{rel_path}: {message}")

    def _dry_run(
        self,
        data: dict[str, Any],
        *,
        full: bool,
        excluded: list[str],
        cancel: threading.Event | None,
    ) -> ServiceResult:
        """Same detection as a real run, without touching the index."""
        op = "reindex"
        index = self._vault.index
        root = self._vault.root
        would_index: list[str] = []
        try:
            would_delete = set(index.find_deleted_files(root))
            for prefix in excluded:
                would_delete.update(index.files_with_prefix(prefix))
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))

        def classify(rel_path: str, mtime: float) -> bool:
            try:
                stale = full or mtime > index.get_file_mtime(rel_path)
            except IndexDatabaseError as exc:
                data["errors"].append({"file_path": rel_path, "error": str(exc)})
                return False
            if stale:
                would_index.append(rel_path)
            else:
                data["files_skipped"] += 1
            return False

        try:
            for walked in walk_vault(root, exclude_dirs=excluded, cancel=cancel, select=classify):
                if walked.error:
                    data["errors"].append({"file_path": walked.relative_path, "error": walked.error})
            data["cancelled"] = cancel is not None and cancel.is_set()
        except OSError as exc:
            return failure(op, "IO_ERROR", f"Cannot walk vault {root}: {exc}")

        data["would_index"] = would_index
        data["would_delete"] = sorted(would_delete)
        return ServiceResult(ok=True, op=op, data=data)

    @traced
    def reindex_file(self, rel_path: str) -> ServiceResult:
        """Reindex a single file, then re-run reference resolution.

        A file that no longer exists has its rows removed.
        """
        op = "reindex_file"
        try:
            index = self._index(op)
            schema = self._schema(op)
            data = self._refresh_one(op, normalize_rel_path(rel_path), schema)
            resolved = index.resolve_references(self._vault.daily_directory, vault_root=self._vault.root)
        except ServiceAbort as exc:
            return exc.result
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc))

        data["refs_resolved"] = resolved.resolved
        data["refs_unresolved"] = resolved.unresolved
        return ServiceResult(ok=True, op=op, data=data)

    @traced
    def reindex_files(self, rel_paths: Iterable[str], *, resolve_all: bool = True) -> ServiceResult:
        """Refresh several files, then run one reference-resolution pass.

        A file that cannot be refreshed becomes a warning and the rest
        carry on. With ``resolve_all=False`` only the references held by
        the refreshed files are resolved.
        """
        op = "reindex_files"
        try:
            index = self._index(op)
            schema = self._schema(op)
        except ServiceAbort as exc:
            return exc.result

        files: list[dict[str, Any]] = []
        warnings: list[str] = []
        for rel in dict.fromkeys(normalize_rel_path(p) for p in rel_paths):
            try:
                files.append(self._refresh_one(op, rel, schema))
            except ServiceAbort as exc:
                msg = exc.result.error.message if exc.result.error else "unknown error"
                warnings.append(f"reindex of {rel} failed: {msg}")
            except IndexDatabaseError as exc:
                warnings.append(f"reindex of {rel} failed: {exc}")

        scope = None if resolve_all else [f["file_path"] for f in files]
        try:
            with trace_span("resolve_references"):
                resolved = index.resolve_references(
                    self._vault.daily_directory, vault_root=self._vault.root, file_paths=scope
                )
        except IndexDatabaseError as exc:
            return failure(op, "DATABASE_ERROR", str(exc), warnings=warnings)

        for message in warnings:
            logger.debug("%s", message)
        data: dict[str, Any] = {
            "files": files,
            "resolve_all": resolve_all,
            "refs_resolved": resolved.resolved,
            "refs_unresolved": resolved.unresolved,
        }
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    def _refresh_one(self, op: str, rel: str, schema: Any) -> dict[str, Any]:
        """Bring one file's rows in line with disk, without resolving refs.

        Raises ServiceAbort for a path outside the vault or an unreadable
        file; IndexDatabaseError passes through.
        """
        index = self._vault.index
        try:
            path = self._vault.abs_path(rel)
        except ValueError as exc:
            raise ServiceAbort(failure(op, "VALIDATION_FAILED", str(exc))) from exc

        data: dict[str, Any] = {"file_path": rel, "removed": False, "skipped": False}
        if _under(rel, self._vault.excluded_prefixes) or not path.is_file():
            index.remove_file(rel)
            data["removed"] = not path.is_file()
            data["skipped"] = path.is_file()
            return data

        result = read_and_parse(self._vault.root, rel)
        if result.document is None:
            raise ServiceAbort(
                failure(op, "IO_ERROR", f"Cannot index {rel}: {result.error}", detail={"file_path": rel})
            )
        counts = index.index_document(result.document, schema, result.mtime)
        data.update(objects=counts.objects, traits=counts.traits, references=counts.refs)
        return data
