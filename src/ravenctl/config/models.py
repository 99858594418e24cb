"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, ravenctl.toml only contains
overrides. A fresh vault needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class VaultConfig(BaseModel):
    """[vault] section."""

    model_config = {"frozen": True}

    daily_directory: str = "daily"
    protected_prefixes: list[str] = Field(default_factory=list)
    auto_reindex: bool = True
    trash_directory: str = ".trash"
    exclude_dirs: list[str] = Field(default_factory=list)

    @field_validator("daily_directory", "trash_directory")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        return value.replace("\\", "/").strip("/")


class IndexConfig(BaseModel):
    """[index] section."""

    model_config = {"frozen": True}

    resolve_batch_size: int = Field(default=750, ge=1)

