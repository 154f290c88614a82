"""Command: parse a repoinit script and print its operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

import click

from repoinit.commands._base import RepoinitCommand

if TYPE_CHECKING:
    from repoinit.commands._context import AppContext


@click.command(
    cls=RepoinitCommand,
    examples="""\
  repoinit parse provisioning.txt
  repoinit --json parse provisioning.txt""",
)
@click.argument("script", type=click.File("r", encoding="utf-8"))
@click.pass_obj
def parse(app: AppContext, script: TextIO) -> None:
    """Parse SCRIPT without touching the repository."""
    from repoinit.services.provision import ProvisionService

    app.emit(ProvisionService.parse(script.read()))
