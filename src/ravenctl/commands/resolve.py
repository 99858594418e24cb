"""Command: resolve a reference to an object."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ravenctl.commands._base import RavenCommand

if TYPE_CHECKING:
    from ravenctl.commands._context import AppContext


@click.command(
    cls=RavenCommand,
    examples="""\
  ravenctl resolve freya
  ravenctl resolve people/freya
  ravenctl resolve "projects/website#tasks"
  ravenctl resolve today
  ravenctl resolve 2026-02-14 --allow-missing""",
)
@click.argument("reference")
@click.option(
    "--allow-missing",
    is_flag=True,
    help="Treat dates as resolved even when the daily note does not exist.",
)
@click.pass_obj
def resolve(app: AppContext, reference: str, allow_missing: bool) -> None:
    """Resolve REFERENCE (path, id, short name, alias, name or date)."""
    from ravenctl.services.query import QueryService

    app.emit(QueryService(app.vault).resolve(reference, allow_missing=allow_missing))
