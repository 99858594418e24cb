"""Tests for the serve command."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from ravenctl.cli import cli


class TestServeCommand:
    def test_serve_registered(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--help"])
        assert "serve" in result.output

    def test_serve_help_shows_transports(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["serve", "--help"])
        assert "stdio" in result.output
        assert "streamable-http" in result.output
        assert "--read-only" in result.output

    @pytest.mark.usefixtures("_isolated_vault")
    def test_missing_extra(self, cli_runner: CliRunner) -> None:
        with patch("ravenctl.mcp.server.mcp_available", False):
            result = cli_runner.invoke(cli, ["serve"])
        assert result.exit_code == 1
        assert "MCP not installed" in result.stderr

    @pytest.mark.usefixtures("_isolated_vault")
    def test_serve_invokes_create_server_with_transport_options(
        self, cli_runner: CliRunner, vault_root: Path
    ) -> None:
        server = MagicMock()

        with (
            patch("ravenctl.mcp.server.mcp_available", True),
            patch("ravenctl.mcp.server.create_server", return_value=server) as create_server,
        ):
            result = cli_runner.invoke(
                cli, ["serve", "--transport", "sse", "--host", "0.0.0.0", "--port", "9000"]
            )

        assert result.exit_code == 0, result.output
        create_server.assert_called_once()
        args, kwargs = create_server.call_args
        assert args[0].root == vault_root.resolve()
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 9000
        assert kwargs["read_only"] is False
        server.run.assert_called_once_with(transport="sse")

    @pytest.mark.usefixtures("_isolated_vault")
    def test_read_only_flag(self, cli_runner: CliRunner) -> None:
        with (
            patch("ravenctl.mcp.server.mcp_available", True),
            patch("ravenctl.mcp.server.create_server", return_value=MagicMock()) as create_server,
        ):
            result = cli_runner.invoke(cli, ["serve", "--read-only"])
        assert result.exit_code == 0, result.output
        assert create_server.call_args.kwargs["read_only"] is True

    def test_missing_vault_root(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        with (
            patch("ravenctl.mcp.server.mcp_available", True),
            patch("ravenctl.mcp.server.create_server") as create_server,
        ):
            result = cli_runner.invoke(cli, ["--vault", str(tmp_path / "gone"), "serve"])
        assert result.exit_code == 1
        assert "Vault root is not a directory" in result.stderr
        create_server.assert_not_called()
