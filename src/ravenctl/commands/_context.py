"""AppContext — shared Click context for all commands.

Created once by the root CLI group and passed to subcommands via
``@click.pass_obj``. Opens the vault lazily and centralizes result
emission (stdout/stderr routing and exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ravenctl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from ravenctl.config.settings import RavenSettings
    from ravenctl.infrastructure.vault import Vault
    from ravenctl.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The vault (and with it the index database) is only opened on first
    use, so ``--help`` and ``--version`` never touch disk.
    """

    def __init__(self, settings: RavenSettings) -> None:
        self.settings = settings
        self._vault: Vault | None = None

        from ravenctl.config.logging import configure_logging

        configure_logging(
            verbose=settings.verbose,
            log_json=settings.log_json,
            vault_root=settings.vault_root,
        )

        if settings.verbose:
            from ravenctl.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def vault(self) -> Vault:
        """The vault instance (created lazily on first access)."""
        if self._vault is None:
            from ravenctl.infrastructure.vault import Vault

            self._vault = Vault(self.settings)
        return self._vault

    def close(self) -> None:
        """Release the index connection if the vault was opened."""
        if self._vault is not None:
            self._vault.close()
            self._vault = None

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: stdout; warnings go to stderr unless in JSON mode.
        * Failure: stderr, then exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # In JSON mode, warnings are already in the serialized payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
