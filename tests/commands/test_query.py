"""Tests for the query command group."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from ravenctl.cli import cli
from tests.conftest import seed_people, write_file

DAILY = """\
---
type: date
---
# 2026-02-14

- @task(todo) Call [[freya]] #followup
- @due(2026-02-20) Send the contract
"""


@pytest.fixture
def indexed(cli_runner: CliRunner, vault_root: Path, _isolated_vault: None) -> Path:
    seed_people(vault_root)
    write_file(vault_root, "daily/2026-02-14.md", DAILY)
    write_file(vault_root, "scratch.md", "just text\n")
    result = cli_runner.invoke(cli, ["reindex"])
    assert result.exit_code == 0, result.output
    return vault_root


def _data(cli_runner: CliRunner, *args: str) -> dict:
    result = cli_runner.invoke(cli, ["--json", "query", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["data"]


@pytest.mark.usefixtures("indexed")
class TestQueryCommands:
    def test_get(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["query", "get", "freya"])
        assert result.exit_code == 0
        assert "people/freya" in result.stdout
        assert "type: person" in result.stdout

    def test_get_missing(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["query", "get", "nobody"])
        assert result.exit_code == 1

    def test_trait(self, cli_runner: CliRunner) -> None:
        data = _data(cli_runner, "trait", "daily/2026-02-14.md:trait:0")
        assert data["trait_type"] == "task"
        assert data["parent_object_id"] == "daily/2026-02-14#2026-02-14"

    def test_objects_quiet(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-q", "query", "objects", "company"])
        assert result.stdout.strip() == "companies/acme"

    def test_traits_by_value(self, cli_runner: CliRunner) -> None:
        data = _data(cli_runner, "traits", "task", "--value", "todo")
        assert data["count"] == 1

    def test_backlinks(self, cli_runner: CliRunner) -> None:
        data = _data(cli_runner, "backlinks", "freya")
        assert [r["source_id"] for r in data["items"]] == ["daily/2026-02-14#2026-02-14"]

    def test_tags(self, cli_runner: CliRunner) -> None:
        data = _data(cli_runner, "tags")
        assert {t["tag"] for t in data["items"]} == {"contacts", "followup"}

    def test_date(self, cli_runner: CliRunner) -> None:
        data = _data(cli_runner, "date", "2026-02-20")
        assert [(d["source_type"], d["field_name"]) for d in data["items"]] == [("trait", "due")]

    def test_untyped(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-q", "query", "untyped"])
        assert result.stdout.strip() == "scratch"
