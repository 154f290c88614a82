"""Tests for ProvisionService — parse, apply, commit/discard."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from repoinit.domain.operations import CreateServiceUser
from repoinit.infrastructure.repository import Repository
from repoinit.plugins import hookimpl
from repoinit.services.provision import ProvisionService
from tests.conftest import apply_script

SCRIPT = """\
create service user reader with path system/content
create path (sling:Folder) /content/site
set ACL for reader
    allow jcr:read on /content
end
"""


class TestParse:
    def test_parse_only(self) -> None:
        result = ProvisionService.parse(SCRIPT)
        assert result.ok
        assert result.data["count"] == 3
        assert [o["kind"] for o in result.data["operations"]] == [
            "create_service_user",
            "create_node",
            "set_acl",
        ]

    def test_parse_error(self) -> None:
        result = ProvisionService.parse("create path /a\nfrobnicate")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "PARSE_ERROR"
        assert result.error.detail["line"] == 2

    def test_password_not_exposed(self) -> None:
        result = ProvisionService.parse("create user bob with password hunter2")
        assert "hunter2" not in str(result.data)


class TestApply:
    def test_apply_commits(self, repository: Repository) -> None:
        data = apply_script(repository, SCRIPT)
        assert data["committed"] is True
        assert data["count"] == 3
        assert data["changed"] == 3
        with repository.session() as s:
            reader = s.principals.lookup("reader")
            assert reader is not None
            assert reader.path == "/home/users/system/content/reader"
            assert s.node_exists("/content/site")

    def test_second_apply_changes_nothing(self, repository: Repository) -> None:
        apply_script(repository, SCRIPT)
        data = apply_script(repository, SCRIPT)
        assert data["changed"] == 0
        assert data["counts"] == {"exists": 2, "unchanged": 1}

    def test_reapply_with_inherited_mixin(self, repository: Repository) -> None:
        script = "create path /a(nt:folder mixin mix:created)\n"
        assert apply_script(repository, script)["changed"] == 1
        data = apply_script(repository, script)
        assert data["changed"] == 0
        assert data["counts"] == {"exists": 1}

    def test_failure_commits_nothing(self, repository: Repository) -> None:
        result = ProvisionService(repository).apply(
            "create service user a\ncreate path /x\n"
            "set ACL for missing\n  allow jcr:read on /x\nend\n"
            "create path /y\ncreate service user b\n"
        )
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "PRINCIPAL_NOT_FOUND"
        assert result.error.detail["index"] == 2
        assert len(result.error.detail["applied"]) == 2
        assert result.data == {"committed": False}
        with repository.session() as s:
            assert s.principals.lookup("a") is None
            assert not s.node_exists("/x")

    def test_parse_error_touches_nothing(self, repository: Repository) -> None:
        result = ProvisionService(repository).apply("create service user a\nbogus")
        assert not result.ok
        with repository.session() as s:
            assert s.principals.lookup("a") is None

    def test_dry_run_discards(self, repository: Repository) -> None:
        result = ProvisionService(repository).apply(SCRIPT, dry_run=True)
        assert result.ok
        assert result.data["dry_run"] is True
        assert result.data["committed"] is False
        assert result.data["changed"] == 3
        with repository.session() as s:
            assert s.principals.lookup("reader") is None

    def test_apply_operations(self, repository: Repository) -> None:
        result = ProvisionService(repository).apply_operations(
            [CreateServiceUser(principal_id="svc")]
        )
        assert result.ok
        assert result.data["outcomes"] == [
            {"index": 0, "kind": "create_service_user", "target": "svc", "status": "created"}
        ]
        assert "duration_ms" in (result.meta or {})

    def test_unsupported_operation(self, repository: Repository) -> None:
        result = ProvisionService(repository).apply_operations(["nope"])  # type: ignore[list-item]
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "UNSUPPORTED_OPERATION"

    def test_apply_file(self, repository: Repository, tmp_path: Path) -> None:
        script = tmp_path / "init.txt"
        script.write_text("create service user reader\n", encoding="utf-8")
        result = ProvisionService(repository).apply_file(script)
        assert result.ok

    def test_apply_missing_file(self, repository: Repository, tmp_path: Path) -> None:
        result = ProvisionService(repository).apply_file(tmp_path / "missing.txt")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "READ_ERROR"


class TestHooks:
    class Recorder:
        def __init__(self) -> None:
            self.pre: list[int] = []
            self.post: list[tuple[int, int, bool]] = []

        @hookimpl
        def pre_apply(self, operations: list[dict[str, Any]]) -> None:
            self.pre.append(len(operations))

        @hookimpl
        def post_apply(
            self, operation_count: int, outcomes: list[dict[str, Any]], committed: bool
        ) -> None:
            self.post.append((operation_count, len(outcomes), committed))

    def _recorder(self, repository: Repository) -> TestHooks.Recorder:
        recorder = self.Recorder()
        repository.init_plugins()
        assert repository.plugin_manager is not None
        repository.plugin_manager.register_plugin(recorder, name="recorder")
        return recorder

    def test_hooks_on_success(self, repository: Repository) -> None:
        recorder = self._recorder(repository)
        apply_script(repository, SCRIPT)
        assert recorder.pre == [3]
        assert recorder.post == [(3, 3, True)]

    def test_post_apply_on_failure(self, repository: Repository) -> None:
        recorder = self._recorder(repository)
        ProvisionService(repository).apply("create service user a\ndisable user ghost")
        assert recorder.post == [(2, 1, False)]
