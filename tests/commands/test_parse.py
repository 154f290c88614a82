"""Tests for the parse CLI command."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from repoinit.cli import cli


@pytest.mark.usefixtures("_isolated_repository")
class TestParseCommand:
    def test_parse_json(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["--json", "parse", "-"], input="create service user a, b\ndelete path /x\n"
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["data"]["count"] == 3
        assert data["data"]["operations"][2] == {"kind": "delete_node", "path": "/x"}

    def test_parse_does_not_open_repository(self, cli_runner: CliRunner, repository_root) -> None:
        cli_runner.invoke(cli, ["parse", "-"], input="create path /a\n")
        assert not (repository_root / ".repoinit").exists()

    def test_parse_human(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["parse", "-"], input="create path /a\n")
        assert result.exit_code == 0
        assert "create_node" in result.output

    def test_parse_error(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "parse", "-"], input="register nodetypes\n")
        assert result.exit_code == 1
        assert json.loads(result.stderr)["error"]["code"] == "PARSE_ERROR"
