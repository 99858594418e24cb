"""RavenSettings: the one settings object every command and service reads.

Values are layered, first match wins:

1. keyword arguments (Click flags such as ``--json`` or ``--vault``)
2. ``RAVENCTL_*`` environment variables, ``__`` between section and key
   (``RAVENCTL_VAULT__DAILY_DIRECTORY=journal``)
3. the ``[vault]`` and ``[index]`` tables of ``ravenctl.toml``
4. defaults on :mod:`ravenctl.config.models`

Only the section tables are read from TOML. Output flags are per-run and
other tables are left for other tools sharing the file.
"""

from __future__ import annotations

import tomllib
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from ravenctl.config.discovery import find_config
from ravenctl.config.models import IndexConfig, VaultConfig

_TOML_SECTIONS = ("vault", "index")

# The TOML file picked by from_cli(), visible to settings_customise_sources().
_toml_in_use: ContextVar[Path | None] = ContextVar("ravenctl_toml_in_use", default=None)


def load_toml_sections(path: Path) -> dict[str, Any]:
    """Return the known section tables of *path*.

    Raises click.ClickException when the file is not valid TOML.
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise click.ClickException(f"Invalid TOML in {path}: {exc}") from exc
    return {key: data[key] for key in _TOML_SECTIONS if isinstance(data.get(key), dict)}


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by a ``ravenctl.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None) -> None:
        super().__init__(settings_cls)
        self._sections = load_toml_sections(path) if path and path.is_file() else {}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._sections.get(field_name), field_name, field_name in self._sections

    def __call__(self) -> dict[str, Any]:
        return dict(self._sections)


class RavenSettings(BaseSettings):
    """Frozen settings for one ravenctl invocation.

    Attributes:
        vault_root: Absolute vault directory. ``--vault`` wins, then the
            directory holding ``ravenctl.toml``, then the CWD.
        config_path: The TOML file that was read, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "RAVENCTL_",
        "env_nested_delimiter": "__",
    }

    vault_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    vault: VaultConfig = Field(default_factory=VaultConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, TomlSettingsSource(settings_cls, _toml_in_use.get()))

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        vault_root: Path | None = None,
        **flags: Any,
    ) -> RavenSettings:
        """Build settings for a CLI run or an MCP server.

        An explicit *config_path* that does not exist is ignored, as is a
        missing ``ravenctl.toml``; a vault needs no config file.
        """
        if config_path:
            explicit = Path(config_path)
            toml_path = explicit if explicit.is_file() else None
        else:
            toml_path = find_config(vault_root)

        if vault_root is None:
            vault_root = toml_path.parent if toml_path else Path.cwd()

        token = _toml_in_use.set(toml_path)
        try:
            return cls(vault_root=vault_root.resolve(), config_path=toml_path, **flags)
        finally:
            _toml_in_use.reset(token)
