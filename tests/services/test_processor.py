"""Tests for OperationProcessor — ordering, idempotence, failure semantics."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from repoinit.domain.errors import OperationFailedError, UnsupportedOperationError
from repoinit.domain.operations import (
    CreateNode,
    CreateServiceUser,
    DeleteServiceUser,
    DisableUser,
    EnableUser,
    Operation,
)
from repoinit.domain.script import parse_script
from repoinit.infrastructure.repository import Repository, RepositorySession
from repoinit.services.processor import OperationProcessor
from repoinit.services.report import OutcomeStatus


@pytest.fixture
def processor() -> OperationProcessor:
    return OperationProcessor()


def _statuses(
    processor: OperationProcessor, session: RepositorySession, text: str
) -> list[OutcomeStatus]:
    report = processor.apply(session, parse_script(text))
    return [o.status for o in report.outcomes]


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


class TestPrincipalIdempotence:
    def test_create_twice(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        statuses = _statuses(
            processor, session, "create service user reader\ncreate service user reader"
        )
        assert statuses == [OutcomeStatus.CREATED, OutcomeStatus.EXISTS]
        assert len(session.principals.list()) == 1

    def test_delete_absent(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        report = processor.apply(session, [DeleteServiceUser(principal_id="ghost")])
        assert report.outcomes[0].status is OutcomeStatus.ABSENT
        assert not session.has_pending_changes

    def test_disable_enable_round_trip(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        statuses = _statuses(
            processor,
            session,
            'create user bob\ndisable user bob : "left"\ndisable user bob : "left"\n'
            "enable user bob\nenable user bob",
        )
        assert statuses == [
            OutcomeStatus.CREATED,
            OutcomeStatus.DISABLED,
            OutcomeStatus.UNCHANGED,
            OutcomeStatus.ENABLED,
            OutcomeStatus.UNCHANGED,
        ]
        bob = session.principals.lookup("bob")
        assert bob is not None
        assert bob.enabled
        assert bob.disabled_reason is None

    def test_service_flag_requires_service_user(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        with pytest.raises(OperationFailedError) as exc_info:
            _statuses(processor, session, "create user bob\ndisable service user bob")
        assert exc_info.value.code == "PRINCIPAL_KIND_MISMATCH"

    def test_create_over_other_kind_fails(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        with pytest.raises(OperationFailedError) as exc_info:
            _statuses(processor, session, "create user bob\ncreate service user bob")
        assert exc_info.value.code == "PRINCIPAL_KIND_MISMATCH"
        assert exc_info.value.index == 1


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


class TestNodeSemantics:
    def test_create_path_with_intermediates(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        _statuses(processor, session, "create path (sling:Folder) /apps/site/config")
        assert session.require_node("/apps").primary_type == "sling:Folder"
        assert session.require_node("/apps/site/config").primary_type == "sling:Folder"

    def test_default_node_type(self, session: RepositorySession) -> None:
        processor = OperationProcessor(default_node_type="sling:Folder")
        processor.apply(session, [CreateNode(path="/a/b")])
        assert session.require_node("/a").primary_type == "sling:Folder"

    def test_create_existing_verifies(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        statuses = _statuses(
            processor, session, "create path /a(nt:unstructured)\ncreate path /a(nt:unstructured)"
        )
        assert statuses == [OutcomeStatus.CREATED, OutcomeStatus.EXISTS]

    def test_type_mismatch_message(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        with pytest.raises(OperationFailedError) as exc_info:
            _statuses(
                processor,
                session,
                "create path /a(nt:unstructured)\ncreate path /a(sling:Folder)",
            )
        assert exc_info.value.code == "PRIMARY_TYPE_MISMATCH"
        assert (
            "Primary type mismatch for /a, expected sling:Folder but got nt:unstructured"
            in exc_info.value.message
        )

    def test_mixins_must_match_exactly(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        _statuses(processor, session, "create path /a(mixin mix:title, mix:language)")
        with pytest.raises(OperationFailedError) as exc_info:
            _statuses(processor, session, "create path /a(mixin mix:title)")
        assert exc_info.value.code == "MIXIN_MISMATCH"
        assert exc_info.value.detail["extra"] == ["mix:language"]

    def test_empty_mixin_set_required(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        _statuses(processor, session, "create path /a(mixin mix:title)")
        with pytest.raises(OperationFailedError):
            processor.apply(session, [CreateNode(path="/a", mixins=())])

    def test_unspecified_mixins_not_checked(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        statuses = _statuses(processor, session, "create path /a(mixin mix:title)\ncreate path /a")
        assert statuses[1] is OutcomeStatus.EXISTS

    def test_mixin_changes(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        statuses = _statuses(
            processor,
            session,
            "create path /a\nadd mixin mix:title to /a\nadd mixin mix:title to /a\n"
            "remove mixin mix:title from /a\nremove mixin mix:title from /a",
        )
        assert statuses[1:] == [
            OutcomeStatus.UPDATED,
            OutcomeStatus.UNCHANGED,
            OutcomeStatus.UPDATED,
            OutcomeStatus.UNCHANGED,
        ]

    def test_delete_path_idempotent(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        statuses = _statuses(
            processor, session, "create path /a/b\ndelete path /a\ndelete path /a"
        )
        assert statuses == [OutcomeStatus.CREATED, OutcomeStatus.DELETED, OutcomeStatus.ABSENT]


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

NODETYPES = """\
register nodetypes
<<===
<ex='http://example.com/ex'>
[ex:Page] > nt:unstructured
===>>
"""


class TestSchema:
    def test_nodetypes_idempotent(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        statuses = _statuses(processor, session, NODETYPES + NODETYPES)
        assert statuses == [OutcomeStatus.REGISTERED, OutcomeStatus.UNCHANGED]

    def test_nodetypes_conflict(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        _statuses(processor, session, NODETYPES)
        with pytest.raises(OperationFailedError) as exc_info:
            _statuses(processor, session, NODETYPES.replace("nt:unstructured", "nt:folder"))
        assert exc_info.value.code == "NODE_TYPE_CONFLICT"

    def test_registered_type_usable_later_in_batch(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        _statuses(processor, session, NODETYPES + "create path /p(ex:Page)")
        assert session.require_node("/p").primary_type == "ex:Page"

    def test_namespace(self, processor: OperationProcessor, session: RepositorySession) -> None:
        text = "register namespace (ex) http://example.com/ex\n" * 2
        assert _statuses(processor, session, text) == [
            OutcomeStatus.REGISTERED,
            OutcomeStatus.UNCHANGED,
        ]


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


class TestAcl:
    SETUP = "create service user reader\ncreate path /content\n"

    def test_acl_requires_principal_first(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        text = "set ACL for reader\n  allow jcr:read on /\nend\ncreate service user reader"
        with pytest.raises(OperationFailedError) as exc_info:
            _statuses(processor, session, text)
        assert exc_info.value.code == "PRINCIPAL_NOT_FOUND"
        assert exc_info.value.index == 0

    def test_order_sensitive_outcome(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        text = self.SETUP + (
            "set ACL for reader\n  allow jcr:read on /content\nend\n"
            "set ACL for reader\n  deny jcr:read on /content\nend\n"
        )
        _statuses(processor, session, text)
        (entry,) = session.access.entries(principal_id="reader")
        assert entry.allow is False

    def test_same_acl_twice_unchanged(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        block = "set ACL for reader\n  allow jcr:read, jcr:write on /content\nend\n"
        statuses = _statuses(processor, session, self.SETUP + block + block)
        assert statuses[2:] == [OutcomeStatus.UPDATED, OutcomeStatus.UNCHANGED]
        assert len(session.access.entries(principal_id="reader")) == 2

    def test_acl_on_missing_path(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        text = self.SETUP + "set ACL for reader\n  allow jcr:read on /missing\nend\n"
        with pytest.raises(OperationFailedError) as exc_info:
            _statuses(processor, session, text)
        assert exc_info.value.code == "NODE_NOT_FOUND"
        assert session.access.entries() == []

    def test_unknown_privilege(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        text = self.SETUP + "set ACL for reader\n  allow jcr:fly on /content\nend\n"
        with pytest.raises(OperationFailedError) as exc_info:
            _statuses(processor, session, text)
        assert exc_info.value.code == "UNKNOWN_PRIVILEGE"


# ---------------------------------------------------------------------------
# Batch semantics
# ---------------------------------------------------------------------------


class TestBatch:
    FAILING = (
        "create service user a\n"
        "create path /x\n"
        "set ACL for missing\n  allow jcr:read on /x\nend\n"
        "create path /y\n"
        "create service user b\n"
    )

    def test_failure_stops_batch(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        operations = parse_script(self.FAILING)
        with pytest.raises(OperationFailedError) as exc_info:
            processor.apply(session, operations)
        err = exc_info.value
        assert err.index == 2
        assert err.operation is operations[2]
        assert err.message.startswith("Operation 3 (set ACL for missing) failed")
        assert [a["index"] for a in err.detail["applied"]] == [0, 1]
        assert not session.node_exists("/y")
        assert session.principals.lookup("b") is None
        assert isinstance(err.__cause__, Exception)

    def test_processor_never_commits(
        self, processor: OperationProcessor, repository: Repository
    ) -> None:
        with repository.session() as s:
            processor.apply(s, parse_script("create service user a\ncreate path /x"))
        with repository.session() as s:
            assert s.principals.lookup("a") is None
            assert not s.node_exists("/x")

    def test_failed_batch_leaves_nothing_after_discard(
        self, processor: OperationProcessor, repository: Repository
    ) -> None:
        with repository.session() as s, pytest.raises(OperationFailedError):
            processor.apply(s, parse_script(self.FAILING))
        with repository.session() as s:
            assert s.principals.lookup("a") is None
            assert not s.node_exists("/x")

    def test_unsupported_operation_rejected_up_front(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        operations: list[object] = [CreateServiceUser(principal_id="a"), "drop table"]
        with pytest.raises(UnsupportedOperationError) as exc_info:
            processor.apply(session, operations)  # type: ignore[arg-type]
        assert exc_info.value.detail["index"] == 1
        assert session.principals.lookup("a") is None
        assert not session.has_pending_changes

    def test_empty_batch(self, processor: OperationProcessor, session: RepositorySession) -> None:
        report = processor.apply(session, [])
        assert report.outcomes == []
        assert report.changed == 0

    def test_report_counts(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        operations: list[Operation] = [
            CreateServiceUser(principal_id="a"),
            CreateServiceUser(principal_id="a"),
            DisableUser(principal_id="a", service=True),
            EnableUser(principal_id="a", service=True),
        ]
        report = processor.apply(session, operations)
        assert report.changed == 3
        assert report.counts() == {"created": 1, "exists": 1, "disabled": 1, "enabled": 1}

    def test_logs_each_applied_operation(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        with capture_logs() as logs:
            processor.apply(session, parse_script("create service user a\ncreate path /x"))
        applied = [e for e in logs if e["event"] == "operation.applied"]
        assert [(e["index"], e["kind"], e["status"]) for e in applied] == [
            (0, "create_service_user", "created"),
            (1, "create_node", "created"),
        ]

    def test_logs_failure(
        self, processor: OperationProcessor, session: RepositorySession
    ) -> None:
        with capture_logs() as logs, pytest.raises(OperationFailedError):
            processor.apply(session, parse_script(self.FAILING))
        failed = [e for e in logs if e["event"] == "operation.failed"]
        assert failed[0]["index"] == 2
        assert failed[0]["error"] == "PrincipalNotFoundError"
