"""Command group: bulk trait edits."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ravenctl.commands._base import RavenGroup

if TYPE_CHECKING:
    from ravenctl.commands._context import AppContext


@click.group(
    cls=RavenGroup,
    examples="""\
  ravenctl trait update due 2026-03-01 --where-value 2026-02-14
  ravenctl trait update due 2026-03-01 --where-value 2026-02-14 --confirm""",
)
@click.pass_obj
def trait(app: AppContext) -> None:
    """Preview and apply changes to ``@trait(value)`` annotations."""


@trait.command(
    mutates=True,
    examples="""\
  # Preview every @priority becoming high
  ravenctl trait update priority high

  # Only move dues that are on a given day, and write the change
  ravenctl trait update due 2026-03-01 --where-value 2026-02-14 --confirm

  # Target specific occurrences
  ravenctl trait update due tomorrow --id daily/2026-02-14.md:trait:0 --confirm"""
)
@click.argument("trait_type")
@click.argument("new_value")
@click.option("--where-value", default=None, help="Only traits currently equal to this value.")
@click.option("--id", "trait_ids", multiple=True, help="Trait ID to update (repeatable).")
@click.pass_obj
def update(
    app: AppContext,
    trait_type: str,
    new_value: str,
    where_value: str | None,
    trait_ids: tuple[str, ...],
    confirm: bool,
) -> None:
    """Set every selected ``@TRAIT_TYPE`` to NEW_VALUE."""
    from ravenctl.services.traits import TraitBulkService

    svc = TraitBulkService(app.vault)
    result = svc.update(
        trait_type,
        new_value,
        where_value=where_value,
        ids=trait_ids,
        confirm=confirm,
    )
    app.emit(result)
