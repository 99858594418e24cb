"""Command group: run agent-authored edit plans."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from ravenctl.commands._base import RavenGroup

if TYPE_CHECKING:
    from ravenctl.commands._context import AppContext


@click.group(
    cls=RavenGroup,
    examples="""\
  ravenctl workflow apply-plan weekly-review plan.json
  ravenctl workflow apply-plan weekly-review plan.json --confirm
  cat plan.json | ravenctl workflow apply-plan weekly-review - --confirm""",
)
@click.pass_obj
def workflow(app: AppContext) -> None:
    """Preview and apply multi-step edit plans."""


@workflow.command(
    "apply-plan",
    mutates=True,
    examples="""\
  # Show what each op would do
  ravenctl workflow apply-plan triage plan.json

  # Apply all ops, or none if any fails
  ravenctl workflow apply-plan triage plan.json --confirm""",
)
@click.argument("name")
@click.argument("plan_file")
@click.pass_obj
def apply_plan(app: AppContext, name: str, plan_file: str, confirm: bool) -> None:
    """Validate and run PLAN_FILE (``-`` for stdin) as workflow NAME."""
    from ravenctl.services.result import failure
    from ravenctl.services.workflow import PlanError, WorkflowService, load_plan_text, read_plan_file

    op = "workflow_apply" if confirm else "workflow_preview"
    try:
        if plan_file == "-":
            plan = load_plan_text(sys.stdin.read().strip())
        else:
            plan = read_plan_file(Path(plan_file))
    except PlanError as exc:
        detail = {"index": exc.index, "op": exc.op} if exc.index is not None else None
        app.emit(failure(op, "VALIDATION_FAILED", str(exc), detail=detail))
        return
    except OSError as exc:
        app.emit(failure(op, "IO_ERROR", f"Cannot read plan {plan_file}: {exc}"))
        return

    svc = WorkflowService(app.vault)
    result = svc.apply(name, plan) if confirm else svc.preview(name, plan)
    app.emit(result)
