"""FastMCP server setup.

Optional extra, guarded behind try/except ImportError. Transport is
stdio by default; streamable HTTP and SSE are available.

The server works on one vault for its whole life. Its instructions tell
the agent which vault that is and that every mutating tool previews
unless called with ``confirm=True``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

mcp_available = False
_FastMCP: Any = None

try:
    from mcp.server.fastmcp import FastMCP as _FastMCP  # type: ignore[no-redef,import-not-found]

    mcp_available = True
except ImportError:
    pass

if TYPE_CHECKING:
    from ravenctl.infrastructure.vault import Vault

__all__ = ["create_server", "instructions_for", "mcp_available"]

logger = logging.getLogger(__name__)


def instructions_for(vault: Vault, *, read_only: bool = False) -> str:
    """Server instructions describing *vault* to the connecting agent."""
    lines = [
        f"Markdown vault at {vault.root}. Files are the truth; the index is derived "
        "and raven_reindex brings it up to date.",
        f"Daily notes live in {vault.daily_directory}/ and are named YYYY-MM-DD.md.",
        "Read raven://schema for object types and trait defaults before editing.",
    ]
    if read_only:
        lines.append("This server is read-only: no tool changes vault files.")
    else:
        lines.append(
            "raven_trait_update and raven_apply_plan only preview unless called with "
            "confirm=True; show the preview to the user before confirming."
        )
    protected = ", ".join(vault.protected_prefixes)
    lines.append(f"Protected paths, never edited: {protected}.")
    return "\n".join(lines)


def create_server(
    vault: Vault | None = None,
    *,
    vault_root: Path | None = None,
    host: str = "127.0.0.1",
    port: int = 8000,
    read_only: bool = False,
) -> Any:
    """Create and configure the MCP server.

    Serves *vault* when given (the CLI passes its own, so ``--config`` and
    environment overrides carry over); otherwise opens the vault at
    *vault_root* or the discovered root. *host* and *port* only apply to
    HTTP transports.

    Raises RuntimeError if the mcp extra is not installed.
    """
    if not mcp_available or _FastMCP is None:
        msg = "MCP extra not installed. Install with: pip install ravenctl[mcp]"
        raise RuntimeError(msg)

    from ravenctl.mcp.resources import register_resources
    from ravenctl.mcp.tools import register_tools

    if vault is None:
        from ravenctl.config.settings import RavenSettings
        from ravenctl.infrastructure.vault import Vault

        vault = Vault(RavenSettings.from_cli(vault_root=vault_root))

    server = _FastMCP(
        "ravenctl",
        instructions=instructions_for(vault, read_only=read_only),
        host=host,
        port=port,
    )
    register_tools(server, vault, read_only=read_only)
    register_resources(server, vault)
    logger.info("MCP server ready for %s (read_only=%s)", vault.root, read_only)
    return server
