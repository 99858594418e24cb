"""Subcommand modules for ravenctl.

register_commands() uses deferred imports to keep ``ravenctl --help``
fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all command groups and standalone commands on the root CLI group."""
    # --- Groups ---
    from ravenctl.commands.query import query
    from ravenctl.commands.trait import trait
    from ravenctl.commands.workflow import workflow

    cli.add_command(query)
    cli.add_command(trait)
    cli.add_command(workflow)

    # --- Standalone commands ---
    from ravenctl.commands.init_cmd import init_cmd
    from ravenctl.commands.reindex import reindex
    from ravenctl.commands.resolve import resolve
    from ravenctl.commands.serve import serve
    from ravenctl.commands.stats import stats

    cli.add_command(init_cmd)
    cli.add_command(reindex)
    cli.add_command(resolve)
    cli.add_command(stats)
    cli.add_command(serve)
