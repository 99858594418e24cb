"""Tests for MCP resource implementations (no mcp package required)."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ravenctl.infrastructure.vault import Vault
from ravenctl.mcp.resources import NO_SCHEMA, overview_impl, register_resources, schema_impl
from tests.conftest import SCHEMA_YAML, reindex, seed_people


class _RecordingServer:
    """Stands in for FastMCP: collects the functions passed to ``resource()``."""

    def __init__(self) -> None:
        self.resources: dict[str, Callable[..., Any]] = {}

    def resource(self, uri: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.resources[uri] = fn
            return fn

        return decorator


class TestSchemaResource:
    def test_returns_schema_text(self, vault: Vault) -> None:
        assert schema_impl(vault) == SCHEMA_YAML

    def test_vault_without_schema(self, vault: Vault, vault_root: Path) -> None:
        (vault_root / "schema.yaml").unlink()
        assert schema_impl(vault) == NO_SCHEMA


class TestOverviewResource:
    def test_layout_and_counts(self, vault: Vault, vault_root: Path) -> None:
        seed_people(vault_root)
        reindex(vault)
        overview = overview_impl(vault)
        assert overview["vault_root"] == str(vault_root.resolve())
        assert overview["daily_directory"] == "daily"
        assert ".raven/" in overview["protected_prefixes"]
        assert overview["stats"]["file_count"] == 2


class TestRegisterResources:
    def test_uris(self, vault: Vault) -> None:
        server = _RecordingServer()
        register_resources(server, vault)
        assert set(server.resources) == {"raven://schema", "raven://overview"}
        assert json.loads(server.resources["raven://overview"]())["daily_directory"] == "daily"
