"""Root CLI group for repoinit with global flags and command registration."""

from __future__ import annotations

from pathlib import Path

import click

from repoinit import __version__
from repoinit.commands import register_commands
from repoinit.commands._base import RepoinitGroup
from repoinit.commands._context import AppContext
from repoinit.config.settings import RepoinitSettings


@click.group(cls=RepoinitGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="repoinit")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug logs.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.option(
    "-r",
    "--repository",
    "repository_root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Repository directory (default: config file's directory or CWD).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
    repository_root: Path | None,
) -> None:
    """repoinit — provision a content repository from a script."""
    settings = RepoinitSettings.from_cli(
        config_path=config_path,
        repository_root=repository_root,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
