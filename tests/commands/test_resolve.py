"""Tests for the resolve command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from ravenctl.cli import cli
from tests.conftest import seed_people, write_file


@pytest.fixture
def indexed(cli_runner: CliRunner, vault_root: Path, _isolated_vault: None) -> Path:
    seed_people(vault_root)
    write_file(vault_root, "clients/freya.md", "# Client Freya\n")
    result = cli_runner.invoke(cli, ["reindex"])
    assert result.exit_code == 0, result.output
    return vault_root


@pytest.mark.usefixtures("indexed")
class TestResolveCommand:
    def test_path_reference(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "resolve", "people/freya"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)["data"]
        assert data["object_id"] == "people/freya"

    def test_quiet_prints_id(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-q", "resolve", "The Queen"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "people/freya"

    def test_ambiguous_exits_1(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["resolve", "freya"])
        assert result.exit_code == 1
        assert "people/freya" in result.stderr
        assert "clients/freya" in result.stderr

    def test_ambiguous_json_on_stderr(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "resolve", "freya"])
        payload = json.loads(result.stderr)
        assert payload["error"]["code"] == "AMBIGUOUS"
        assert len(payload["error"]["detail"]["matches"]) == 2

    def test_not_found(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["resolve", "nobody"])
        assert result.exit_code == 1
        assert "Reference not found: nobody" in result.stderr

    def test_allow_missing_date(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-q", "resolve", "2026-02-14", "--allow-missing"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "daily/2026-02-14"
