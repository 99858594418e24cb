"""Command group: read-only lookups against the index."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ravenctl.commands._base import RavenGroup
from ravenctl.services.query import QueryService

if TYPE_CHECKING:
    from ravenctl.commands._context import AppContext

_QUERY_EXAMPLES = """\
  ravenctl query get freya
  ravenctl query objects person
  ravenctl query traits due --value 2026-02-14
  ravenctl query backlinks people/freya
  ravenctl query tags
  ravenctl query date today
  ravenctl query untyped"""


@click.group(cls=RavenGroup, examples=_QUERY_EXAMPLES)
@click.pass_obj
def query(app: AppContext) -> None:
    """Look up objects, traits, references, tags and dates."""


@query.command(
    examples="""\
  ravenctl query get freya
  ravenctl query get "projects/website#tasks"
  ravenctl --json query get people/freya"""
)
@click.argument("reference")
@click.pass_obj
def get(app: AppContext, reference: str) -> None:
    """Show one object with its frontmatter fields."""
    app.emit(QueryService(app.vault).get(reference))


@query.command("trait", examples="  ravenctl query trait daily/2026-02-14.md:trait:0")
@click.argument("trait_id")
@click.pass_obj
def trait_cmd(app: AppContext, trait_id: str) -> None:
    """Show one trait by ID (``<file>:trait:<n>``)."""
    app.emit(QueryService(app.vault).get_trait(trait_id))


@query.command(examples="  ravenctl query objects person\n  ravenctl -q query objects project")
@click.argument("object_type")
@click.pass_obj
def objects(app: AppContext, object_type: str) -> None:
    """List objects of OBJECT_TYPE."""
    app.emit(QueryService(app.vault).objects(object_type))


@query.command(
    examples="""\
  ravenctl query traits due
  ravenctl query traits priority --value high"""
)
@click.argument("trait_type")
@click.option("--value", default=None, help="Only traits whose effective value equals this.")
@click.pass_obj
def traits(app: AppContext, trait_type: str, value: str | None) -> None:
    """List ``@TRAIT_TYPE`` annotations in file order."""
    app.emit(QueryService(app.vault).traits(trait_type, value=value))


@query.command(examples="  ravenctl query backlinks freya")
@click.argument("reference")
@click.pass_obj
def backlinks(app: AppContext, reference: str) -> None:
    """List references pointing at REFERENCE (or its sections)."""
    app.emit(QueryService(app.vault).backlinks(reference))


@query.command(examples="  ravenctl query tags\n  ravenctl query tags research")
@click.argument("tag", required=False)
@click.pass_obj
def tags(app: AppContext, tag: str | None) -> None:
    """Count tags, or list the objects carrying TAG."""
    app.emit(QueryService(app.vault).tags(tag))


@query.command(examples="  ravenctl query date today\n  ravenctl query date 2026-02-14")
@click.argument("date_ref")
@click.pass_obj
def date(app: AppContext, date_ref: str) -> None:
    """List everything dated DATE_REF (ISO date, today, yesterday, tomorrow)."""
    app.emit(QueryService(app.vault).date(date_ref))


@query.command(examples="  ravenctl query untyped")
@click.pass_obj
def untyped(app: AppContext) -> None:
    """List pages with no declared type."""
    app.emit(QueryService(app.vault).untyped())
