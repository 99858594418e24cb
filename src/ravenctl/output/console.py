"""Rich Console factory and theme for ravenctl output.

Consoles render to a StringIO buffer, preserving the
``format_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich disables color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

RAVEN_THEME = Theme(
    {
        "raven.ok": "bold green",
        "raven.error": "bold red",
        "raven.warning": "bold yellow",
        "raven.op": "bold cyan",
        "raven.key": "dim",
        "raven.id": "bold blue",
        "raven.path": "dim",
        "raven.value": "magenta",
        "raven.status.modified": "green",
        "raven.status.skipped": "dim",
        "raven.status.error": "red",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=RAVEN_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    """Rich style for a trait-update status (``modified``/``skipped``/``error``)."""
    return f"raven.status.{status}" if status in ("modified", "skipped", "error") else ""
