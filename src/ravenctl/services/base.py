"""BaseService — foundation for all ravenctl services.

Every service receives a :class:`Vault` at construction time. The Vault
provides the index, the schema, path protection and file transactions.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ravenctl.domain.schema import SchemaError
from ravenctl.infrastructure.database.engine import IndexDatabaseError
from ravenctl.infrastructure.resolver import ResolveOptions
from ravenctl.services.result import ServiceResult, failure

if TYPE_CHECKING:
    from datetime import date

    from ravenctl.domain.schema import Schema
    from ravenctl.infrastructure.index import IndexDatabase
    from ravenctl.infrastructure.resolver import ResolveResult
    from ravenctl.infrastructure.vault import Vault

logger = logging.getLogger(__name__)


class ServiceAbort(Exception):
    """Carries a failed ServiceResult out of nested helper calls."""

    def __init__(self, result: ServiceResult) -> None:
        super().__init__(result.error.message if result.error else result.op)
        self.result = result


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class ReindexService(BaseService):
            def reindex(self, options: ReindexOptions) -> ServiceResult:
                index = self._index("reindex")
                ...
    """

    def __init__(self, vault: Vault) -> None:
        self._vault = vault

    def _index(self, op: str) -> IndexDatabase:
        """The vault index, or :class:`ServiceAbort` with ``DATABASE_ERROR``."""
        try:
            return self._vault.index
        except IndexDatabaseError as exc:
            raise ServiceAbort(failure(op, "DATABASE_ERROR", str(exc))) from exc

    def _schema(self, op: str) -> Schema | None:
        try:
            return self._vault.schema
        except SchemaError as exc:
            raise ServiceAbort(failure(op, "VALIDATION_FAILED", str(exc))) from exc
        except OSError as exc:
            raise ServiceAbort(failure(op, "IO_ERROR", f"Cannot read schema: {exc}")) from exc

    def _resolve(
        self,
        op: str,
        reference: str,
        *,
        allow_missing: bool = False,
        today: date | None = None,
    ) -> ResolveResult:
        """Resolve *reference* or raise :class:`ServiceAbort`.

        Ambiguity is ``AMBIGUOUS`` with every candidate and its strategy
        in ``detail["matches"]``; no match is ``NOT_FOUND``.
        """
        index = self._index(op)
        try:
            resolver = index.resolver(
                ResolveOptions(
                    vault_root=self._vault.root,
                    daily_directory=self._vault.daily_directory,
                    today=today,
                )
            )
        except IndexDatabaseError as exc:
            raise ServiceAbort(failure(op, "DATABASE_ERROR", str(exc))) from exc

        result = resolver.resolve(reference, allow_missing=allow_missing)
        if result.found:
            return result
        if result.ambiguous:
            raise ServiceAbort(
                failure(
                    op,
                    "AMBIGUOUS",
                    f"Reference {reference!r} is ambiguous ({len(result.matches)} matches)",
                    detail={"reference": reference, "matches": result.to_dict()["matches"]},
                )
            )
        raise ServiceAbort(
            failure(op, "NOT_FOUND", f"Reference not found: {reference}", detail={"reference": reference})
        )

    def _reindex_touched(
        self, rel_paths: Iterable[str], warnings: list[str], *, resolve_all: bool = True
    ) -> None:
        """Best-effort reindex of files a mutation wrote.

        All files share one resolution pass. With ``resolve_all=False``
        only the references the files hold are re-resolved; a later call
        with no paths finishes the sweep.

        INVARIANT: Reindex failures are warnings, never errors; the files
        on disk are already the truth.
        """
        if not self._vault.settings.vault.auto_reindex:
            return
        paths = list(dict.fromkeys(rel_paths))
        if not paths and not resolve_all:
            return
        from ravenctl.services.reindex import ReindexService

        result = ReindexService(self._vault).reindex_files(paths, resolve_all=resolve_all)
        warnings.extend(result.warnings)
        if not result.ok:
            msg = result.error.message if result.error else "unknown error"
            logger.debug("Post-write reindex failed for %s: %s", paths, msg)
            warnings.append(f"reindex failed: {msg}")
