"""Subcommand modules for repoinit.

register_commands() uses deferred imports so ``repoinit --help`` stays
fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the ``check`` group and the standalone commands."""
    from repoinit.commands.apply import apply
    from repoinit.commands.check import check
    from repoinit.commands.parse import parse

    cli.add_command(apply)
    cli.add_command(parse)
    cli.add_command(check)
