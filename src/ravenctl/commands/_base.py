"""Custom Click base classes for ravenctl commands.

RavenCommand and RavenGroup accept an ``examples`` parameter. Passing
``--examples`` prints them and exits, so ``--help`` stays short.

Commands that can change vault files are declared with ``mutates=True``.
They get the shared ``--confirm`` flag: without it the command only
previews, and the help text says so.
"""

from __future__ import annotations

from typing import Any

import click

PREVIEW_NOTE = "Without --confirm nothing is written; the output shows what would change."


def _add_examples_option(cmd: click.Command | click.Group, examples: str) -> None:
    """Attach an eager ``--examples`` flag to a Click command or group."""

    def show_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(examples)
        ctx.exit(0)

    cmd.params.append(
        click.Option(
            ["--examples"],
            is_flag=True,
            expose_value=False,
            is_eager=True,
            callback=show_examples,
            help="Show usage examples.",
        )
    )


def _add_confirm_option(cmd: click.Command) -> None:
    """Attach ``--confirm`` (passed to the callback as ``confirm``)."""
    cmd.params.append(
        click.Option(
            ["--confirm"],
            is_flag=True,
            default=False,
            help="Write the changes to the vault (default is a preview).",
        )
    )
    cmd.epilog = f"{cmd.epilog}\n\n{PREVIEW_NOTE}" if cmd.epilog else PREVIEW_NOTE


class RavenCommand(click.Command):
    """Click Command with ``--examples`` and, for mutating commands, ``--confirm``."""

    def __init__(
        self,
        *args: Any,
        examples: str | None = None,
        mutates: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        self.mutates = mutates
        if mutates:
            _add_confirm_option(self)
        if examples:
            _add_examples_option(self, examples)


class RavenGroup(click.Group):
    """Click Group that supports an ``--examples`` flag.

    Subcommands default to RavenCommand, so they take ``examples=`` and
    ``mutates=`` without an explicit ``cls=``.
    """

    command_class = RavenCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)
