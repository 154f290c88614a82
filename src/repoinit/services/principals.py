"""Principal reconciler — users and service users.

Create and delete are idempotent; enable/disable toggle the directory's
disabled flag. The directory itself is always asked, never cached, so a
principal created earlier in the same batch is visible here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from repoinit.domain.errors import (
    PrincipalKindMismatchError,
    PrincipalNotFoundError,
    PrincipalPathError,
)
from repoinit.domain.operations import (
    CreateServiceUser,
    CreateUser,
    DeleteServiceUser,
    DeleteUser,
    DisableUser,
    EnableUser,
)
from repoinit.domain.principals import Principal, PrincipalKind, resolve_principal_path
from repoinit.services.report import OutcomeStatus

if TYPE_CHECKING:
    from repoinit.infrastructure.repository import RepositorySession


class PrincipalReconciler:
    """Applies principal operations to a session's directory."""

    def create(
        self, session: RepositorySession, op: CreateUser | CreateServiceUser
    ) -> OutcomeStatus:
        kind = PrincipalKind.SERVICE if isinstance(op, CreateServiceUser) else PrincipalKind.USER
        existing = session.principals.lookup(op.principal_id)
        if existing is not None:
            if existing.kind is not kind:
                msg = (
                    f"Principal {op.principal_id} already exists as a {_label(existing.kind)}, "
                    f"not a {_label(kind)}"
                )
                raise PrincipalKindMismatchError(
                    msg,
                    principal_id=op.principal_id,
                    expected=kind.value,
                    actual=existing.kind.value,
                )
            if op.path:
                wanted = resolve_principal_path(op.principal_id, kind, op.path, session.roots)
                if wanted != existing.path:
                    msg = (
                        f"Principal {op.principal_id} exists at {existing.path}, "
                        f"not at requested {wanted}"
                    )
                    raise PrincipalPathError(
                        msg, principal_id=op.principal_id, expected=wanted, actual=existing.path
                    )
            return OutcomeStatus.EXISTS

        path = resolve_principal_path(op.principal_id, kind, op.path, session.roots)
        password = op.password if isinstance(op, CreateUser) else None
        session.principals.create(op.principal_id, kind, path, password=password)
        return OutcomeStatus.CREATED

    def delete(
        self, session: RepositorySession, op: DeleteUser | DeleteServiceUser
    ) -> OutcomeStatus:
        # Either kind is removed: deleting is about the id, not how it was created.
        if session.principals.lookup(op.principal_id) is None:
            return OutcomeStatus.ABSENT
        session.principals.delete(op.principal_id)
        return OutcomeStatus.DELETED

    def disable(self, session: RepositorySession, op: DisableUser) -> OutcomeStatus:
        principal = self._require(session, op.principal_id, service=op.service)
        if principal.disabled:
            if (principal.disabled_reason or "") == op.reason:
                return OutcomeStatus.UNCHANGED
            session.principals.set_enabled(op.principal_id, False, reason=op.reason)
            return OutcomeStatus.UPDATED
        session.principals.set_enabled(op.principal_id, False, reason=op.reason)
        return OutcomeStatus.DISABLED

    def enable(self, session: RepositorySession, op: EnableUser) -> OutcomeStatus:
        principal = self._require(session, op.principal_id, service=op.service)
        if principal.enabled:
            return OutcomeStatus.UNCHANGED
        session.principals.set_enabled(op.principal_id, True)
        return OutcomeStatus.ENABLED

    @staticmethod
    def _require(session: RepositorySession, principal_id: str, *, service: bool) -> Principal:
        principal = session.principals.lookup(principal_id)
        if principal is None:
            msg = f"Principal not found: {principal_id}"
            raise PrincipalNotFoundError(msg, principal_id=principal_id)
        if service and not principal.is_system_user:
            msg = f"Principal {principal_id} is not a service user"
            raise PrincipalKindMismatchError(
                msg,
                principal_id=principal_id,
                expected=PrincipalKind.SERVICE.value,
                actual=principal.kind.value,
            )
        return principal


def _label(kind: PrincipalKind) -> str:
    return "service user" if kind is PrincipalKind.SERVICE else "user"
