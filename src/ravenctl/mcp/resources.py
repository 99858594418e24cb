"""MCP resources: what an agent reads before it edits the vault.

``raven://schema`` is the vault's ``schema.yaml`` (types, fields and
trait defaults) and ``raven://overview`` is the vault layout plus index
counts. Each has an ``*_impl`` function testable without the mcp package.
"""

from __future__ import annotations

import json
from typing import Any

from ravenctl.domain.schema import SCHEMA_FILENAME
from ravenctl.infrastructure.filesystem import read_text

NO_SCHEMA = (
    f"This vault has no {SCHEMA_FILENAME}. Objects are untyped and bare "
    "traits have no default value."
)


def schema_impl(vault: Any) -> str:
    """Raw ``schema.yaml`` text, or a note that the vault has none."""
    path = vault.root / SCHEMA_FILENAME
    if not path.is_file():
        return NO_SCHEMA
    return read_text(path)


def overview_impl(vault: Any) -> dict[str, Any]:
    """Vault layout and index counts."""
    from ravenctl.services.query import QueryService

    config = vault.settings.vault
    overview: dict[str, Any] = {
        "vault_root": str(vault.root),
        "daily_directory": config.daily_directory,
        "protected_prefixes": list(vault.protected_prefixes),
        "auto_reindex": config.auto_reindex,
    }
    result = QueryService(vault).stats()
    if result.ok:
        overview["stats"] = result.data
    else:
        overview["stats_error"] = result.error.message if result.error else "unavailable"
    return overview


def register_resources(server: Any, vault: Any) -> None:
    """Register the vault resources on the FastMCP server."""

    @server.resource("raven://schema")  # type: ignore[untyped-decorator]
    def schema_resource() -> str:
        """The vault's types, fields and trait definitions."""
        return schema_impl(vault)

    @server.resource("raven://overview")  # type: ignore[untyped-decorator]
    def overview_resource() -> str:
        """Vault root, daily directory, protected paths and index counts."""
        return json.dumps(overview_impl(vault), indent=2)
