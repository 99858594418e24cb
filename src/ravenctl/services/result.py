"""ServiceResult: what every service method hands back to the CLI and MCP.

INVARIANT: All service-layer methods return ServiceResult.

Failures carry one of five codes:

``NOT_FOUND``
    A reference, object, trait or file does not exist.
``AMBIGUOUS``
    A reference matched more than one object; ``detail["matches"]`` lists
    them with the strategy that found each.
``VALIDATION_FAILED``
    Bad input: a malformed plan, a schema violation, a protected path.
``DATABASE_ERROR``
    The index could not be opened, queried or written.
``IO_ERROR``
    A vault file could not be read or written.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ErrorCode = Literal["NOT_FOUND", "AMBIGUOUS", "VALIDATION_FAILED", "DATABASE_ERROR", "IO_ERROR"]


class ServiceError(BaseModel):
    model_config = {"frozen": True}

    code: ErrorCode
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Outcome of one service operation.

    ``op`` names the operation (``"resolve"``, ``"trait_update"``,
    ``"workflow_apply"``...) and selects the renderer. ``warnings`` are
    non-fatal and may accompany either outcome; a reindex that failed
    after a successful write, for example. ``meta`` holds the telemetry
    tree on ``--verbose`` runs.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None


def failure(
    op: str,
    code: ErrorCode,
    message: str,
    *,
    detail: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> ServiceResult:
    """Build an ``ok=False`` result."""
    return ServiceResult(
        ok=False,
        op=op,
        warnings=list(warnings or []),
        error=ServiceError(code=code, message=message, detail=dict(detail or {})),
    )
