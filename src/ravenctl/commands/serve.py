"""serve — expose the vault to agents over MCP (requires ravenctl[mcp] extra)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ravenctl.commands._base import RavenCommand

if TYPE_CHECKING:
    from ravenctl.commands._context import AppContext


@click.command(
    cls=RavenCommand,
    examples="""\
  # Serve the current vault over stdio (default)
  ravenctl serve

  # Serve another vault, with no tool that edits files
  ravenctl --vault ~/notes serve --read-only

  # Streamable HTTP on custom host/port
  ravenctl serve --transport streamable-http --host 0.0.0.0 --port 9000""",
)
@click.option(
    "--transport",
    default="stdio",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    help="MCP transport protocol.",
)
@click.option("--host", default="127.0.0.1", help="Bind address (HTTP transports only).")
@click.option("--port", default=8000, type=int, help="Listen port (HTTP transports only).")
@click.option(
    "--read-only",
    is_flag=True,
    help="Leave out raven_trait_update and raven_apply_plan.",
)
@click.pass_obj
def serve(app: AppContext, transport: str, host: str, port: int, read_only: bool) -> None:
    """Serve this vault's index, queries and edit plans over MCP."""
    from ravenctl.mcp.server import create_server, mcp_available

    if not mcp_available:
        click.echo("MCP not installed. Install with: pip install ravenctl[mcp]", err=True)
        raise SystemExit(1)

    if not app.settings.vault_root.is_dir():
        raise click.ClickException(f"Vault root is not a directory: {app.settings.vault_root}")

    server = create_server(app.vault, host=host, port=port, read_only=read_only)
    server.run(transport=transport)
