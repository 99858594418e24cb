"""Command: bring the index up to date with the vault's files."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ravenctl.commands._base import RavenCommand

if TYPE_CHECKING:
    from ravenctl.commands._context import AppContext


@click.command(
    cls=RavenCommand,
    examples="""\
  ravenctl reindex
  ravenctl reindex --full
  ravenctl reindex --dry-run
  ravenctl reindex --file people/freya.md
  ravenctl --json reindex""",
)
@click.option("--full", is_flag=True, help="Clear the index and re-parse every file.")
@click.option("--dry-run", is_flag=True, help="Report what would change without writing.")
@click.option("--file", "file_path", default=None, help="Reindex a single vault-relative file.")
@click.pass_obj
def reindex(app: AppContext, full: bool, dry_run: bool, file_path: str | None) -> None:
    """Index new and changed files and drop deleted ones."""
    from ravenctl.services.reindex import ReindexOptions, ReindexService

    svc = ReindexService(app.vault)
    if file_path:
        app.emit(svc.reindex_file(file_path))
    else:
        app.emit(svc.reindex(ReindexOptions(full=full, dry_run=dry_run)))
