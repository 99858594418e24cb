"""Tests for the workflow command group."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from ravenctl.cli import cli
from tests.conftest import FREYA, seed_people

PLAN = {
    "plan_version": 1,
    "ops": [
        {"op": "add", "why": "capture follow-up", "args": {"to": "freya", "text": "Send the deck"}},
        {"op": "set", "why": "promote", "args": {"object_id": "freya", "fields": {"alias": "Queen"}}},
    ],
}


@pytest.fixture
def indexed(cli_runner: CliRunner, vault_root: Path, _isolated_vault: None) -> Path:
    seed_people(vault_root)
    assert cli_runner.invoke(cli, ["reindex"]).exit_code == 0
    return vault_root


@pytest.fixture
def plan_file(tmp_path_factory: pytest.TempPathFactory) -> Path:
    path = tmp_path_factory.mktemp("plans") / "plan.json"
    path.write_text(json.dumps(PLAN), encoding="utf-8")
    return path


class TestApplyPlan:
    def test_preview(self, cli_runner: CliRunner, indexed: Path, plan_file: Path) -> None:
        result = cli_runner.invoke(cli, ["workflow", "apply-plan", "triage", str(plan_file)])
        assert result.exit_code == 0, result.output
        assert "Plan preview: triage" in result.stdout
        assert "append to people/freya" in result.stdout
        assert (indexed / "people" / "freya.md").read_text(encoding="utf-8") == FREYA

    def test_confirm(self, cli_runner: CliRunner, indexed: Path, plan_file: Path) -> None:
        args = ["--json", "workflow", "apply-plan", "triage", str(plan_file), "--confirm"]
        result = cli_runner.invoke(cli, args)
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["data"]["applied"] == 2
        content = (indexed / "people" / "freya.md").read_text(encoding="utf-8")
        assert "alias: Queen" in content
        assert content.endswith("- Send the deck\n")

    def test_stdin(self, cli_runner: CliRunner, indexed: Path) -> None:
        envelope = json.dumps({"outputs": {"plan": PLAN}})
        result = cli_runner.invoke(cli, ["--json", "workflow", "apply-plan", "triage", "-"], input=envelope)
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["op"] == "workflow_preview"

    def test_invalid_json(self, cli_runner: CliRunner, indexed: Path) -> None:
        result = cli_runner.invoke(cli, ["--json", "workflow", "apply-plan", "triage", "-"], input="{oops")
        assert result.exit_code == 1
        payload = json.loads(result.stderr)
        assert payload["error"]["code"] == "VALIDATION_FAILED"
        assert "invalid JSON" in payload["error"]["message"]

    def test_bad_op_reports_index(self, cli_runner: CliRunner, indexed: Path) -> None:
        ops = [{"op": "add", "why": "x", "args": {}}, {"op": "nuke", "why": "x", "args": {}}]
        plan = {"plan_version": 1, "ops": ops}
        result = cli_runner.invoke(
            cli, ["--json", "workflow", "apply-plan", "triage", "-"], input=json.dumps(plan)
        )
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["detail"] == {"index": 1, "op": "nuke"}

    def test_missing_file(self, cli_runner: CliRunner, indexed: Path) -> None:
        result = cli_runner.invoke(cli, ["--json", "workflow", "apply-plan", "triage", "nope.json"])
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "IO_ERROR"
