"""Shared pytest fixtures and test helpers for ravenctl tests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from ravenctl.config.settings import RavenSettings
from ravenctl.infrastructure.vault import Vault

SCHEMA_YAML = """\
version: 1

types:
  person:
    default_path: people/
    name_field: name
    fields:
      name: {type: string, required: true}
      alias: {type: string}
      company: {type: ref, target: company}
  company:
    name_field: name
  project:
    fields:
      owner: {type: ref, target: person}
  book:
    name_field: title

traits:
  due: {type: date}
  priority:
    type: enum
    values: [low, medium, high]
    default: medium
  task:
    type: enum
    values: [todo, done]
  highlight: {type: bool}
"""


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def vault_root(tmp_path: Path) -> Path:
    """Temporary vault directory with a schema and the usual folders.

    This is the single source of truth for the vault directory layout.
    All vault-related fixtures (vault, _isolated_vault) build on this.
    """
    (tmp_path / "schema.yaml").write_text(SCHEMA_YAML, encoding="utf-8")
    (tmp_path / "daily").mkdir()
    (tmp_path / "people").mkdir()
    return tmp_path


@pytest.fixture
def vault(vault_root: Path) -> Vault:
    """Vault on the temp directory; the index is opened on first use."""
    settings = RavenSettings.from_cli(vault_root=vault_root)
    v = Vault(settings)
    try:
        yield v
    finally:
        v.close()


@pytest.fixture
def _isolated_vault(vault_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to the temp vault root so the CLI operates on it.

    Use via ``@pytest.mark.usefixtures("_isolated_vault")`` on command test
    classes. Tests that need the path can also request ``vault_root``.
    """
    monkeypatch.chdir(vault_root)
    monkeypatch.delenv("RAVENCTL_CONFIG", raising=False)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def write_file(root: Path, rel_path: str, content: str) -> Path:
    """Write a vault file, creating parent directories."""
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def touch_later(path: Path, seconds: float = 5.0) -> None:
    """Push a file's mtime forward so incremental reindex sees it as changed."""
    st = path.stat()
    os.utime(path, (st.st_atime + seconds, st.st_mtime + seconds))


def reindex(vault: Vault, **kwargs: Any) -> dict[str, Any]:
    """Run ReindexService.reindex, asserting success."""
    from ravenctl.services.reindex import ReindexOptions, ReindexService

    result = ReindexService(vault).reindex(ReindexOptions(**kwargs))
    assert result.ok, result.error
    return result.data


FREYA = """\
---
type: person
name: Freya
alias: The Queen
company: "[[companies/acme]]"
---
# Freya

Met at the conference. #contacts
"""


def seed_people(root: Path) -> None:
    """people/freya (person) plus the company it references."""
    write_file(root, "people/freya.md", FREYA)
    write_file(root, "companies/acme.md", "---\ntype: company\nname: Acme Corp\n---\n# Acme\n")
