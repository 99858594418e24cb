"""Command: scaffold a new vault."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from ravenctl.commands._base import RavenCommand

if TYPE_CHECKING:
    from ravenctl.commands._context import AppContext


@click.command(
    "init",
    cls=RavenCommand,
    examples="""\
  ravenctl init
  ravenctl init ~/notes
  ravenctl init ~/notes --daily-dir journal""",
)
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--daily-dir", default=None, help="Directory for daily notes (default: from config).")
@click.pass_obj
def init_cmd(app: AppContext, path: Path | None, daily_dir: str | None) -> None:
    """Create ravenctl.toml, schema.yaml and the index in PATH (default: vault root)."""
    from ravenctl.services.init import InitService

    root = (path or app.settings.vault_root).resolve()
    daily = daily_dir or app.settings.vault.daily_directory
    app.emit(InitService().init_vault(root, daily_directory=daily))
