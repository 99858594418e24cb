"""Tests for the init command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from ravenctl.cli import cli


class TestInitCommand:
    @pytest.mark.usefixtures("_isolated_vault")
    def test_init_in_cwd_keeps_schema(self, cli_runner: CliRunner, vault_root: Path) -> None:
        result = cli_runner.invoke(cli, ["init"])
        assert result.exit_code == 0, result.output
        assert "created ravenctl.toml" in result.stdout
        assert "kept" in result.stdout
        assert (vault_root / "ravenctl.toml").is_file()

    def test_init_path_with_daily_dir(
        self, cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("RAVENCTL_CONFIG", raising=False)
        target = tmp_path / "notes"
        result = cli_runner.invoke(cli, ["--json", "init", str(target), "--daily-dir", "journal"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)["data"]
        assert data["vault_root"] == str(target.resolve())
        assert (target / "journal").is_dir()
        assert (target / "schema.yaml").is_file()
