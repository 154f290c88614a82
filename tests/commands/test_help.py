"""Parametrized help tests for all CLI commands."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from repoinit.cli import cli

# (CLI args, expected keywords in output)
HELP_COMMANDS: list[tuple[list[str], list[str]]] = [
    (["--help"], ["apply", "parse", "check", "--json", "--repository"]),
    (["apply", "--help"], ["SCRIPT", "--dry-run"]),
    (["parse", "--help"], ["SCRIPT"]),
    (["check", "--help"], ["user", "service-user", "enabled", "disabled", "node"]),
    (["check", "user", "--help"], ["PRINCIPAL_ID", "--absent", "--path-contains"]),
    (["check", "service-user", "--help"], ["--absent", "--path-contains"]),
    (["check", "disabled", "--help"], ["--reason"]),
    (["check", "enabled", "--help"], ["PRINCIPAL_ID"]),
    (["check", "node", "--help"], ["PATH", "--type", "--mixin", "--no-mixins"]),
]


def _help_id(args_keywords: tuple[list[str], list[str]]) -> str:
    args, _ = args_keywords
    return "_".join(a for a in args if a != "--help") or "root"


@pytest.mark.parametrize(
    "args,expected_keywords",
    HELP_COMMANDS,
    ids=[_help_id(item) for item in HELP_COMMANDS],
)
def test_command_help(
    cli_runner: CliRunner, args: list[str], expected_keywords: list[str]
) -> None:
    result = cli_runner.invoke(cli, args)
    assert result.exit_code == 0
    for kw in expected_keywords:
        assert kw in result.output, f"Expected '{kw}' in help output for {args}"
