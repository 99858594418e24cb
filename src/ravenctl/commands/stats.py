"""Command: index row counts."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ravenctl.commands._base import RavenCommand

if TYPE_CHECKING:
    from ravenctl.commands._context import AppContext


@click.command(cls=RavenCommand, examples="  ravenctl stats\n  ravenctl --json stats")
@click.pass_obj
def stats(app: AppContext) -> None:
    """Show how many files, objects, traits and references are indexed."""
    from ravenctl.services.query import QueryService

    app.emit(QueryService(app.vault).stats())
