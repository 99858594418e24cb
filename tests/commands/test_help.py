"""Help output for mutating and read-only commands."""

from __future__ import annotations

import click
import pytest
from click.testing import CliRunner

from ravenctl.cli import cli
from ravenctl.commands._base import PREVIEW_NOTE, RavenCommand

MUTATING = [["trait", "update"], ["workflow", "apply-plan"]]
READ_ONLY = [["reindex"], ["resolve"], ["stats"], ["query", "traits"], ["serve"]]


@pytest.mark.parametrize("args", MUTATING, ids=" ".join)
def test_mutating_commands_document_the_preview(cli_runner: CliRunner, args: list[str]) -> None:
    result = cli_runner.invoke(cli, [*args, "--help"])
    assert result.exit_code == 0, result.output
    assert "--confirm" in result.output
    assert "Without --confirm nothing is written" in result.output


@pytest.mark.parametrize("args", READ_ONLY, ids=" ".join)
def test_read_only_commands_take_no_confirm(cli_runner: CliRunner, args: list[str]) -> None:
    result = cli_runner.invoke(cli, [*args, "--help"])
    assert result.exit_code == 0, result.output
    assert "--confirm" not in result.output


class TestRavenCommand:
    def test_mutates_passes_confirm(self) -> None:
        seen: list[bool] = []

        @click.command(cls=RavenCommand, mutates=True)
        def write(confirm: bool) -> None:
            seen.append(confirm)

        runner = CliRunner()
        assert runner.invoke(write, []).exit_code == 0
        assert runner.invoke(write, ["--confirm"]).exit_code == 0
        assert seen == [False, True]

    def test_preview_note_follows_existing_epilog(self) -> None:
        cmd = RavenCommand("write", epilog="Plans are JSON.", mutates=True)
        assert cmd.epilog == f"Plans are JSON.\n\n{PREVIEW_NOTE}"

    def test_plain_command_unchanged(self) -> None:
        cmd = RavenCommand("read")
        assert cmd.mutates is False
        assert cmd.epilog is None
        assert [p.name for p in cmd.params] == []
