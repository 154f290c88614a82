"""Tests for VerifyService — principal and node checks."""

from __future__ import annotations

import pytest

from repoinit.infrastructure.repository import Repository
from repoinit.services.verify import VerifyService
from tests.conftest import apply_script


@pytest.fixture
def verify(repository: Repository) -> VerifyService:
    apply_script(
        repository,
        """\
create user alice
create service user reader with path system/content
disable service user reader : "retired"
create path /content(sling:Folder mixin mix:title)
""",
    )
    return VerifyService(repository)


class TestPrincipalChecks:
    def test_user(self, verify: VerifyService) -> None:
        result = verify.check_user("alice")
        assert result.ok
        assert result.data["system_user"] is False
        assert result.data["path"] == "/home/users/a/alice"

    def test_service_user_path_contains(self, verify: VerifyService) -> None:
        assert verify.check_service_user("reader", path_contains="/content/").ok
        result = verify.check_service_user("reader", path_contains="/apps/")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "CHECK_FAILED"

    def test_kind_mismatch(self, verify: VerifyService) -> None:
        result = verify.check_service_user("alice")
        assert result.error is not None
        assert result.error.code == "PRINCIPAL_KIND_MISMATCH"

    def test_missing(self, verify: VerifyService) -> None:
        result = verify.check_user("nobody")
        assert result.error is not None
        assert result.error.code == "PRINCIPAL_NOT_FOUND"
        assert result.data["exists"] is False

    def test_absent(self, verify: VerifyService) -> None:
        assert verify.check_user("nobody", absent=True).ok
        assert not verify.check_user("alice", absent=True).ok

    def test_enabled_and_disabled(self, verify: VerifyService) -> None:
        assert verify.check_enabled("alice").ok
        assert not verify.check_enabled("reader").ok
        assert verify.check_disabled("reader", reason="retired").ok
        assert not verify.check_disabled("reader", reason="other").ok
        assert not verify.check_disabled("alice").ok


class TestNodeChecks:
    def test_exact_match(self, verify: VerifyService) -> None:
        result = verify.check_node("/content", primary_type="sling:Folder", mixins=["mix:title"])
        assert result.ok
        assert result.data == {
            "path": "/content",
            "primary_type": "sling:Folder",
            "mixins": ["mix:title"],
        }

    def test_type_mismatch(self, verify: VerifyService) -> None:
        result = verify.check_node("/content", primary_type="nt:unstructured")
        assert result.error is not None
        assert result.error.code == "PRIMARY_TYPE_MISMATCH"

    def test_mixin_mismatch(self, verify: VerifyService) -> None:
        result = verify.check_node("/content", mixins=[])
        assert result.error is not None
        assert result.error.code == "MIXIN_MISMATCH"
        assert result.error.detail["extra"] == ["mix:title"]

    def test_inherited_mixin(self, verify: VerifyService, repository: Repository) -> None:
        apply_script(repository, "create path /folder(nt:folder mixin mix:created)\n")
        result = verify.check_node("/folder", primary_type="nt:folder", mixins=["mix:created"])
        assert result.ok
        assert result.data["mixins"] == []

    def test_missing_node(self, verify: VerifyService) -> None:
        result = verify.check_node("/nope")
        assert result.error is not None
        assert result.error.code == "NODE_NOT_FOUND"

    def test_invalid_path(self, verify: VerifyService) -> None:
        result = verify.check_node("relative")
        assert result.error is not None
        assert result.error.code == "INVALID_PATH"
