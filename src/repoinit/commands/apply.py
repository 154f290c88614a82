"""Command: apply a repoinit script to the repository."""

from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

import click

from repoinit.commands._base import RepoinitCommand

if TYPE_CHECKING:
    from repoinit.commands._context import AppContext


@click.command(
    cls=RepoinitCommand,
    examples="""\
  repoinit apply provisioning.txt
  repoinit apply --dry-run provisioning.txt
  cat provisioning.txt | repoinit apply -
  repoinit --json -r /srv/content apply provisioning.txt""",
)
@click.argument("script", type=click.File("r", encoding="utf-8"))
@click.option("--dry-run", is_flag=True, help="Apply, report, then roll back.")
@click.pass_obj
def apply(app: AppContext, script: TextIO, dry_run: bool) -> None:
    """Apply SCRIPT (use - for stdin) as one all-or-nothing batch."""
    from repoinit.services.provision import ProvisionService

    text = script.read()
    app.emit(ProvisionService(app.repository).apply(text, dry_run=dry_run))
