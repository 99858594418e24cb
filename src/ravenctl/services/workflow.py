"""WorkflowService — preview and apply agent-produced edit plans.

A plan is ``{"plan_version": 1, "ops": [{"op", "why", "args"}, ...]}``.
Every op goes through :func:`WorkflowService.validate_op`, which returns
either :class:`Allow` (a human summary plus the action that performs
it) or :class:`Reject` (the reason). Preview renders the summaries;
apply re-validates the whole plan, refuses to write anything if a single
op is rejected, then runs the actions inside one file transaction so an
I/O failure restores every file the plan already touched.

Actions re-read the files they change when they run, so an op sees the
effects of the ops before it.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ravenctl.domain.content import FrontmatterError, parse_frontmatter, render_frontmatter
from ravenctl.domain.dates import daily_note_id, parse_iso_date
from ravenctl.domain.edits import (
    append_to_end,
    append_to_range,
    append_under_heading,
    bullet,
    replace_exactly_once,
    retarget_link,
)
from ravenctl.domain.links import mask_inline_code
from ravenctl.domain.parser import ParseError, parse_document
from ravenctl.domain.paths import (
    MARKDOWN_SUFFIX,
    file_path_to_object_id,
    normalize_rel_path,
    parse_trait_id,
    short_name,
)
from ravenctl.domain.traits import format_trait, replace_span
from ravenctl.infrastructure.database.engine import IndexDatabaseError
from ravenctl.infrastructure.filesystem import read_text
from ravenctl.services._helpers import plural
from ravenctl.services.base import BaseService, ServiceAbort
from ravenctl.services.result import ServiceResult, failure
from ravenctl.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from ravenctl.infrastructure.resolver import ResolveResult
    from ravenctl.infrastructure.vault import FileTransaction

logger = logging.getLogger(__name__)

PLAN_VERSION = 1
OP_KINDS = ("add", "edit", "set", "move", "update_trait")


class PlanError(ValueError):
    """The plan document itself is malformed.

    ``index``/``op`` identify the offending op when there is one.
    """

    def __init__(self, message: str, *, index: int | None = None, op: str | None = None) -> None:
        super().__init__(message)
        self.index = index
        self.op = op


class OpConflict(Exception):
    """An op's precondition no longer holds when its action runs."""


# ---------------------------------------------------------------------------
# Plan models
# ---------------------------------------------------------------------------


class PlanOp(BaseModel):
    model_config = {"frozen": True}

    op: str
    why: str
    args: dict[str, Any]


class Plan(BaseModel):
    model_config = {"frozen": True}

    plan_version: int
    ops: list[PlanOp]


class AddArgs(BaseModel):
    to: str
    text: str
    heading: str | None = None


class EditArgs(BaseModel):
    path: str
    old_str: str
    new_str: str = ""


class SetArgs(BaseModel):
    object_id: str
    fields: dict[str, Any] = Field(min_length=1)


class MoveArgs(BaseModel):
    source: str
    destination: str
    update_refs: bool = True


class UpdateTraitArgs(BaseModel):
    trait_id: str
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


_REQUIRED = {
    "add": "add requires to and text",
    "edit": "edit requires path and old_str",
    "set": "set requires object_id and fields",
    "move": "move requires source and destination",
    "update_trait": "update_trait requires trait_id and value",
}


def parse_plan(data: Any) -> Plan:
    """Validate a plan document (or an ``{"outputs": {"plan": ...}}`` envelope).

    Raises:
        PlanError: With the first shape problem found.
    """
    if isinstance(data, dict) and isinstance(data.get("outputs"), dict):
        if "plan" not in data["outputs"]:
            raise PlanError("prompt output missing outputs.plan")
        data = data["outputs"]["plan"]
    if not isinstance(data, dict):
        raise PlanError("plan must be a JSON object")
    if data.get("plan_version") != PLAN_VERSION:
        raise PlanError(f"plan_version must be {PLAN_VERSION} (got {data.get('plan_version')!r})")
    ops = data.get("ops")
    if not isinstance(ops, list):
        raise PlanError("ops must be a list")

    for i, raw in enumerate(ops):
        if not isinstance(raw, dict):
            raise PlanError(f"op[{i}]: must be an object", index=i)
        kind = raw.get("op")
        if not isinstance(kind, str) or not kind:
            raise PlanError(f"op[{i}]: missing op", index=i)
        for key in ("why", "args"):
            if key not in raw:
                raise PlanError(f"op[{i}] ({kind}): missing {key}", index=i, op=kind)
        if not isinstance(raw["args"], dict):
            raise PlanError(f"op[{i}] ({kind}): args must be an object", index=i, op=kind)
        if kind not in OP_KINDS:
            raise PlanError(f"op[{i}] ({kind}): unknown op: {kind}", index=i, op=kind)

    try:
        return Plan.model_validate(data)
    except ValidationError as exc:
        raise PlanError(f"invalid plan: {exc}") from exc


def load_plan_text(text: str) -> Plan:
    """Parse plan JSON text (raises PlanError)."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PlanError(f"invalid JSON (expected prompt envelope or plan): {exc}") from exc
    return parse_plan(data)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------

# An action performs one op and returns the vault-relative paths it changed.
Action = Callable[["FileTransaction"], list[str]]


@dataclass(frozen=True)
class Allow:
    summary: str
    action: Action


@dataclass(frozen=True)
class Reject:
    reason: str


Decision = Allow | Reject


class WorkflowService(BaseService):
    """Two-phase application of workflow plans."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @traced
    def preview(self, workflow: str, plan: Plan | dict[str, Any]) -> ServiceResult:
        """Validate every op and describe what apply would do. Never writes."""
        return self._run(workflow, plan, confirm=False)

    @traced
    def apply(self, workflow: str, plan: Plan | dict[str, Any]) -> ServiceResult:
        """Validate the whole plan, then apply it all-or-nothing."""
        return self._run(workflow, plan, confirm=True)

    def validate_op(self, op: PlanOp) -> Decision:
        """Decide whether *op* may run; the single gate for preview and apply."""
        handler = {
            "add": self._validate_add,
            "edit": self._validate_edit,
            "set": self._validate_set,
            "move": self._validate_move,
            "update_trait": self._validate_update_trait,
        }.get(op.op)
        if handler is None:
            return Reject(f"unknown op: {op.op}")
        try:
            return handler(op.args)
        except ValidationError:
            return Reject(_REQUIRED[op.op])
        except ServiceAbort as exc:
            return Reject(exc.result.error.message if exc.result.error else "rejected")
        except (OSError, UnicodeDecodeError) as exc:
            return Reject(f"cannot read file: {exc}")

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def _run(self, workflow: str, plan: Plan | dict[str, Any], *, confirm: bool) -> ServiceResult:
        op_name = "workflow_apply" if confirm else "workflow_preview"
        if not isinstance(plan, Plan):
            try:
                plan = parse_plan(plan)
            except PlanError as exc:
                detail: dict[str, Any] = {}
                if exc.index is not None:
                    detail = {"index": exc.index, "op": exc.op}
                return failure(op_name, "VALIDATION_FAILED", str(exc), detail=detail)

        items: list[dict[str, Any]] = []
        actions: list[Action] = []
        with trace_span("validate"):
            for i, op in enumerate(plan.ops):
                decision = self.validate_op(op)
                if isinstance(decision, Reject):
                    return failure(
                        op_name,
                        "VALIDATION_FAILED",
                        f"op[{i}] ({op.op}): {decision.reason}",
                        detail={"index": i, "op": op.op, "reason": decision.reason},
                    )
                items.append({"op": op.op, "why": op.why, "summary": decision.summary})
                actions.append(decision.action)

        data: dict[str, Any] = {"workflow": workflow, "confirm": confirm, "items": items}
        if not confirm:
            return ServiceResult(ok=True, op=op_name, data=data)

        warnings: list[str] = []
        touched: list[str] = []
        current = 0
        try:
            with trace_span("apply"), self._vault.file_transaction() as txn:
                for current, action in enumerate(actions):
                    changed = action(txn)
                    touched.extend(changed)
                    # Later ops read sections and backlinks of these files.
                    self._reindex_touched(changed, warnings, resolve_all=False)
        except ServiceAbort as exc:
            self._reindex_touched(touched, warnings)
            return exc.result
        except OpConflict as exc:
            self._reindex_touched(touched, warnings)
            kind = plan.ops[current].op
            return failure(
                op_name,
                "VALIDATION_FAILED",
                f"op[{current}] ({kind}): {exc}",
                detail={"index": current, "op": kind, "reason": str(exc)},
            )
        except (OSError, UnicodeDecodeError, FrontmatterError) as exc:
            logger.warning("Plan %s rolled back at op[%d]: %s", workflow, current, exc)
            self._reindex_touched(touched, warnings)
            kind = plan.ops[current].op
            return failure(
                op_name,
                "IO_ERROR",
                f"op[{current}] ({kind}): {exc}; all changes were rolled back",
                detail={"index": current, "op": kind},
                warnings=warnings,
            )

        if touched:
            self._reindex_touched([], warnings)
        data["applied"] = len(actions)
        return ServiceResult(ok=True, op=op_name, data=data, warnings=warnings)

    # ------------------------------------------------------------------
    # Shared checks
    # ------------------------------------------------------------------

    def _target(self, reference: str, *, allow_missing: bool = False) -> ResolveResult:
        try:
            return self._resolve("workflow", reference, allow_missing=allow_missing)
        except ServiceAbort as exc:
            err = exc.result.error
            if err is not None and err.code == "AMBIGUOUS":
                ids = ", ".join(m["object_id"] for m in err.detail.get("matches", []))
                raise ServiceAbort(
                    failure("workflow", "AMBIGUOUS", f"reference {reference!r} is ambiguous: {ids}")
                ) from exc
            if err is not None and err.code == "NOT_FOUND":
                raise ServiceAbort(
                    failure("workflow", "NOT_FOUND", f"reference not found: {reference}")
                ) from exc
            raise

    def _is_daily_note(self, object_id: str) -> bool:
        day = parse_iso_date(short_name(object_id))
        return day is not None and daily_note_id(day, self._vault.daily_directory) == object_id

    # ------------------------------------------------------------------
    # add
    # ------------------------------------------------------------------

    def _validate_add(self, raw: dict[str, Any]) -> Decision:
        args = AddArgs.model_validate(raw)
        if not args.to.strip() or not args.text.strip():
            return Reject(_REQUIRED["add"])
        res = self._target(args.to, allow_missing=True)
        if self._vault.is_protected(res.file_path):
            return Reject(f"target is protected: {res.target_id}")

        exists = (self._vault.root / res.file_path).is_file()
        if not exists and not self._is_daily_note(res.file_object_id):
            return Reject(f"target file does not exist: {res.file_path}")
        if res.is_section and not args.heading and exists:
            if self._section(res.target_id) is None:
                return Reject(f"section not found: {res.target_id}")

        summary = f"append to {res.target_id}"
        if args.heading:
            summary += f' under heading "{args.heading}"'

        def action(txn: FileTransaction) -> list[str]:
            path = self._vault.abs_path(res.file_path)
            line = bullet(args.text)
            if path.is_file():
                content = txn.read_file(path)
            elif self._is_daily_note(res.file_object_id):
                content = _daily_note_template(short_name(res.file_object_id))
            else:
                raise OpConflict(f"target file does not exist: {res.file_path}")

            if args.heading:
                updated = append_under_heading(content, args.heading, line)
            elif res.is_section and path.is_file():
                section = self._section(res.target_id)
                if section is None:
                    raise OpConflict(f"section not found: {res.target_id}")
                updated = append_to_range(content, section["line_start"], section["line_end"], line)
            else:
                updated = append_to_end(content, line)
            txn.write_file(path, updated)
            return [res.file_path]

        return Allow(summary, action)

    def _section(self, object_id: str) -> dict[str, Any] | None:
        try:
            return self._index("workflow").get_object(object_id)
        except IndexDatabaseError as exc:
            raise ServiceAbort(failure("workflow", "DATABASE_ERROR", str(exc))) from exc

    # ------------------------------------------------------------------
    # edit
    # ------------------------------------------------------------------

    def _validate_edit(self, raw: dict[str, Any]) -> Decision:
        args = EditArgs.model_validate(raw)
        if not args.path.strip() or not args.old_str:
            return Reject(_REQUIRED["edit"])
        rel = normalize_rel_path(args.path)
        if self._vault.is_protected(rel):
            return Reject(f"path is protected: {args.path}")
        path = self._vault.abs_path(rel)
        if not path.is_file():
            return Reject(f"file not found: {args.path}")
        _, count = replace_exactly_once(read_text(path), args.old_str, args.new_str)
        if count != 1:
            return Reject(f"old_str must match exactly once (matches={count})")

        def action(txn: FileTransaction) -> list[str]:
            updated, n = replace_exactly_once(txn.read_file(path), args.old_str, args.new_str)
            if n != 1:
                raise OpConflict(f"old_str must match exactly once (matches={n})")
            txn.write_file(path, updated)
            return [rel]

        return Allow(f"edit {args.path} (1 replacement)", action)

    # ------------------------------------------------------------------
    # set
    # ------------------------------------------------------------------

    def _validate_set(self, raw: dict[str, Any]) -> Decision:
        args = SetArgs.model_validate(raw)
        if not args.object_id.strip():
            return Reject(_REQUIRED["set"])
        res = self._target(args.object_id)
        if res.is_section:
            return Reject(f"set does not support embedded objects: {res.target_id}")
        if self._vault.is_protected(res.file_path):
            return Reject(f"target is protected: {args.object_id}")
        path = self._vault.root / res.file_path
        if not path.is_file():
            return Reject(f"file not found: {res.file_path}")
        try:
            parse_frontmatter(read_text(path))
        except FrontmatterError as exc:
            return Reject(str(exc))

        def action(txn: FileTransaction) -> list[str]:
            frontmatter, body = txn.read_content(path)
            for key, value in args.fields.items():
                frontmatter[key] = value
            txn.write_file(path, render_frontmatter(frontmatter, body))
            return [res.file_path]

        return Allow(f"set {plural(len(args.fields), 'field')} on {res.target_id}", action)

    # ------------------------------------------------------------------
    # move
    # ------------------------------------------------------------------

    def _validate_move(self, raw: dict[str, Any]) -> Decision:
        args = MoveArgs.model_validate(raw)
        if not args.source.strip() or not args.destination.strip():
            return Reject(_REQUIRED["move"])
        src = self._target(args.source)
        if src.is_section:
            return Reject(f"cannot move an embedded object: {src.target_id}")
        if self._vault.is_protected(src.file_path):
            return Reject(f"source is protected: {args.source}")
        if not (self._vault.root / src.file_path).is_file():
            return Reject(f"file not found: {src.file_path}")

        dest = normalize_rel_path(args.destination)
        if not dest.endswith(MARKDOWN_SUFFIX):
            dest += MARKDOWN_SUFFIX
        if self._vault.is_protected(dest):
            return Reject(f"destination is protected: {dest}")
        if (self._vault.root / dest).exists():
            return Reject(f"destination already exists: {dest}")

        def action(txn: FileTransaction) -> list[str]:
            src_path = self._vault.abs_path(src.file_path)
            dest_path = self._vault.abs_path(dest)
            if dest_path.exists():
                raise OpConflict(f"destination already exists: {dest}")
            txn.move_file(src_path, dest_path)
            changed = [src.file_path, dest]
            if args.update_refs:
                changed.extend(self._rewrite_refs(txn, src.file_object_id, src.file_path, dest))
            return changed

        return Allow(f"move {src.target_id} -> {dest}", action)

    def _rewrite_refs(self, txn: FileTransaction, src_id: str, src_rel: str, dest_rel: str) -> list[str]:
        """Point path-style wikilinks at the moved file's new ID."""
        try:
            rows = self._index("workflow").backlinks(src_id)
        except IndexDatabaseError as exc:
            raise OSError(f"cannot read backlinks for {src_id}: {exc}") from exc

        path_forms = {src_id, src_rel, short_name(src_id)}
        new_id = file_path_to_object_id(dest_rel)
        by_file: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for row in rows:
            base = row["target_raw"].split("#", 1)[0].strip()
            if row["position_start"] is None or row["line_number"] is None:
                continue
            if base in path_forms or src_id.endswith("/" + base):
                by_file[row["file_path"]].append(row)

        changed: list[str] = []
        for file_rel, file_rows in sorted(by_file.items()):
            actual = dest_rel if file_rel == src_rel else file_rel
            path = self._vault.abs_path(actual)
            lines = txn.read_file(path).split("\n")
            rewritten = False
            for row in sorted(file_rows, key=lambda r: (r["line_number"], r["position_start"]), reverse=True):
                idx = row["line_number"] - 1
                if idx >= len(lines):
                    continue
                start, end = row["position_start"], row["position_end"]
                replacement = retarget_link(lines[idx][start:end], new_id)
                if replacement is None:
                    logger.debug("Link at %s:%d drifted; not rewritten", actual, row["line_number"])
                    continue
                lines[idx] = lines[idx][:start] + replacement + lines[idx][end:]
                rewritten = True
            if rewritten:
                txn.write_file(path, "\n".join(lines))
                changed.append(actual)
        return changed

    # ------------------------------------------------------------------
    # update_trait
    # ------------------------------------------------------------------

    def _validate_update_trait(self, raw: dict[str, Any]) -> Decision:
        args = UpdateTraitArgs.model_validate(raw)
        if not args.trait_id.strip() or not args.value.strip():
            return Reject(_REQUIRED["update_trait"])
        try:
            file_rel, ordinal = parse_trait_id(args.trait_id)
        except ValueError as exc:
            return Reject(str(exc))
        if self._vault.is_protected(file_rel):
            return Reject(f"trait file is protected: {file_rel}")
        path = self._vault.abs_path(file_rel)
        if not path.is_file():
            return Reject(f"file not found: {file_rel}")
        try:
            _locate_trait(read_text(path), file_rel, ordinal)
        except OpConflict as exc:
            return Reject(str(exc))

        def action(txn: FileTransaction) -> list[str]:
            content = txn.read_file(path)
            trait = _locate_trait(content, file_rel, ordinal)
            lines = content.split("\n")
            idx = trait.line - 1
            lines[idx] = replace_span(
                lines[idx], trait.start, trait.end, format_trait(trait.trait_type, args.value)
            )
            txn.write_file(path, "\n".join(lines))
            return [file_rel]

        return Allow(f"update {args.trait_id} -> {args.value}", action)


def _locate_trait(content: str, file_rel: str, ordinal: int) -> Any:
    """The *ordinal*-th trait occurrence in *content* (raises OpConflict)."""
    try:
        doc = parse_document(content, file_rel)
    except ParseError as exc:
        raise OpConflict(str(exc)) from exc
    if ordinal >= len(doc.traits):
        raise OpConflict(f"trait index {ordinal} out of range ({len(doc.traits)} traits in {file_rel})")
    trait = doc.traits[ordinal]
    line = content.split("\n")[trait.line - 1]
    if mask_inline_code(line)[trait.start] != "@":
        raise OpConflict(f"trait {file_rel}:trait:{ordinal} span does not match file content")
    return trait


def _daily_note_template(day: str) -> str:
    return f"---\ntype: date\n---\n# {day}\n"


def read_plan_file(path: Path) -> Plan:
    """Load a plan from a JSON file (raises PlanError or OSError)."""
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise PlanError(f"plan is not valid UTF-8: {exc}") from exc
    return load_plan_text(text.strip())
