"""Config file discovery and the default config template.

Walk-up finder locates ravenctl.toml, similar to how git finds .git/.
Supports RAVENCTL_CONFIG env var and --config CLI flag overrides.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "ravenctl.toml"
CONFIG_ENV_VAR = "RAVENCTL_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ravenctl.toml.

    Returns the path to the config file, or None if not found.
    Checks RAVENCTL_CONFIG env var first.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        if p.is_file():
            return p
        return None

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def render_default_config() -> str:
    """TOML text for a fresh ``ravenctl.toml`` (written by ``ravenctl init``)."""
    return (
        "# ravenctl vault configuration; every key is optional.\n"
        "\n"
        "[vault]\n"
        'daily_directory = "daily"\n'
        "protected_prefixes = []\n"
        "auto_reindex = true\n"
        'trash_directory = ".trash"\n'
        "exclude_dirs = []\n"
        "\n"
        "[index]\n"
        "resolve_batch_size = 750\n"
    )
