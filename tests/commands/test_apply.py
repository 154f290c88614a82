"""Tests for the apply CLI command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from repoinit.cli import cli

SCRIPT = """\
create service user reader with path system/content
create path (sling:Folder) /content/site
set ACL for reader
    allow jcr:read on /content
end
"""


@pytest.mark.usefixtures("_isolated_repository")
class TestApplyCommand:
    def _write(self, repository_root: Path, text: str = SCRIPT) -> str:
        script = repository_root / "init.txt"
        script.write_text(text, encoding="utf-8")
        return str(script)

    def test_apply_human_output(self, cli_runner: CliRunner, repository_root: Path) -> None:
        result = cli_runner.invoke(cli, ["apply", self._write(repository_root)])
        assert result.exit_code == 0
        assert "OK" in result.output
        assert "changed:" in result.output
        assert "statuses: created=3" in result.output
        assert (repository_root / ".repoinit" / "repository.db").exists()

    def test_apply_json(self, cli_runner: CliRunner, repository_root: Path) -> None:
        result = cli_runner.invoke(cli, ["--json", "apply", self._write(repository_root)])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert data["data"]["committed"] is True
        assert [o["status"] for o in data["data"]["outcomes"]] == ["created"] * 3

    def test_reapply_is_noop(self, cli_runner: CliRunner, repository_root: Path) -> None:
        path = self._write(repository_root)
        cli_runner.invoke(cli, ["apply", path])
        result = cli_runner.invoke(cli, ["--json", "apply", path])
        assert json.loads(result.stdout)["data"]["changed"] == 0

    def test_apply_from_stdin(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "apply", "-"], input="create path /a\n")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"]["count"] == 1

    def test_dry_run(self, cli_runner: CliRunner, repository_root: Path) -> None:
        path = self._write(repository_root)
        result = cli_runner.invoke(cli, ["--json", "apply", "--dry-run", path])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"]["committed"] is False
        again = cli_runner.invoke(cli, ["--json", "apply", path])
        assert json.loads(again.stdout)["data"]["changed"] == 3

    def test_failure_exit_code(self, cli_runner: CliRunner, repository_root: Path) -> None:
        path = self._write(repository_root, "create path /a\ndisable user ghost\n")
        result = cli_runner.invoke(cli, ["--json", "apply", path])
        assert result.exit_code == 1
        assert result.stdout == ""
        payload = json.loads(result.stderr)
        assert payload["error"]["code"] == "PRINCIPAL_NOT_FOUND"
        assert payload["error"]["detail"]["index"] == 1

    def test_parse_error_human(self, cli_runner: CliRunner, repository_root: Path) -> None:
        path = self._write(repository_root, "create path /a\nfrobnicate\n")
        result = cli_runner.invoke(cli, ["apply", path])
        assert result.exit_code == 1
        assert "[PARSE_ERROR]" in result.stderr
        assert "line 2" in result.stderr

    def test_quiet(self, cli_runner: CliRunner, repository_root: Path) -> None:
        result = cli_runner.invoke(cli, ["-q", "apply", self._write(repository_root)])
        assert result.output.strip() == "OK: apply"

    def test_missing_script(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["apply", "nope.txt"])
        assert result.exit_code == 2

    def test_repository_option(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere"
        script = tmp_path / "s.txt"
        script.write_text("create path /a\n", encoding="utf-8")
        result = cli_runner.invoke(cli, ["-r", str(target), "apply", str(script)])
        assert result.exit_code == 0
        assert (target / ".repoinit" / "repository.db").exists()

    def test_default_node_type_from_config(
        self, cli_runner: CliRunner, repository_root: Path
    ) -> None:
        (repository_root / "repoinit.toml").write_text(
            '[nodes]\ndefault_node_type = "sling:Folder"\n', encoding="utf-8"
        )
        cli_runner.invoke(cli, ["apply", self._write(repository_root, "create path /a/b\n")])
        result = cli_runner.invoke(cli, ["check", "node", "/a", "--type", "sling:Folder"])
        assert result.exit_code == 0
