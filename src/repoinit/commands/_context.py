"""AppContext — shared Click context for all commands.

Created once by the root CLI group and passed to subcommands via
``@click.pass_obj``. Opens the repository lazily and routes results
to stdout/stderr with the right exit code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from repoinit.config.logging import configure_logging
from repoinit.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from repoinit.config.settings import RepoinitSettings
    from repoinit.infrastructure.repository import Repository
    from repoinit.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The repository is opened on first use so ``--help`` and
    ``--version`` never touch the database.
    """

    def __init__(self, settings: RepoinitSettings) -> None:
        self.settings = settings
        self._repository: Repository | None = None
        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def repository(self) -> Repository:
        """The repository instance (created lazily on first access)."""
        if self._repository is None:
            from repoinit.infrastructure.repository import Repository

            self._repository = Repository(self.settings)
            if self.settings.plugins.enabled:
                self._repository.init_plugins()
        return self._repository

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: stdout, warnings to stderr (unless JSON carries them).
        * Failure: stderr, exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
