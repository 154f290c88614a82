"""VerifyService — read-only checks of principals and nodes.

Used after provisioning to assert that the repository holds what a
script asked for. Every check opens its own session and never writes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from repoinit.domain.errors import (
    InvalidPathError,
    MixinMismatchError,
    NodeNotFoundError,
    NodeTypeMismatchError,
)
from repoinit.domain.paths import normalize_path
from repoinit.domain.principals import Principal, PrincipalKind
from repoinit.services._helpers import error_result
from repoinit.services.base import BaseService
from repoinit.services.nodes import NodeReconciler
from repoinit.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterable


def _principal_data(principal_id: str, principal: Principal | None) -> dict[str, Any]:
    if principal is None:
        return {"principal_id": principal_id, "exists": False}
    return {
        "principal_id": principal_id,
        "exists": True,
        "kind": principal.kind.value,
        "system_user": principal.is_system_user,
        "path": principal.path,
        "enabled": principal.enabled,
        "disabled_reason": principal.disabled_reason,
    }


def _failed(op: str, code: str, message: str, data: dict[str, Any]) -> ServiceResult:
    return ServiceResult(
        ok=False, op=op, data=data, error=ServiceError(code=code, message=message, detail=data)
    )


class VerifyService(BaseService):
    """Checks the stored state of principals and nodes."""

    def _lookup(self, principal_id: str) -> Principal | None:
        with self._repository.session() as session:
            return session.principals.lookup(principal_id)

    def check_user(
        self,
        principal_id: str,
        *,
        absent: bool = False,
        path_contains: str | None = None,
    ) -> ServiceResult:
        """Check that *principal_id* is a regular user (or absent)."""
        return self._check_principal(
            "check_user", principal_id, PrincipalKind.USER, absent, path_contains
        )

    def check_service_user(
        self,
        principal_id: str,
        *,
        absent: bool = False,
        path_contains: str | None = None,
    ) -> ServiceResult:
        """Check that *principal_id* is a service user (or absent)."""
        return self._check_principal(
            "check_service_user", principal_id, PrincipalKind.SERVICE, absent, path_contains
        )

    def _check_principal(
        self,
        op: str,
        principal_id: str,
        kind: PrincipalKind,
        absent: bool,
        path_contains: str | None,
    ) -> ServiceResult:
        principal = self._lookup(principal_id)
        data = _principal_data(principal_id, principal)

        if absent:
            if principal is not None:
                return _failed(op, "CHECK_FAILED", f"Principal {principal_id} exists", data)
            return ServiceResult(ok=True, op=op, data=data)

        if principal is None:
            return _failed(
                op, "PRINCIPAL_NOT_FOUND", f"Principal not found: {principal_id}", data
            )
        if principal.kind is not kind:
            expected = "service user" if kind is PrincipalKind.SERVICE else "regular user"
            return _failed(
                op,
                "PRINCIPAL_KIND_MISMATCH",
                f"Principal {principal_id} is not a {expected}",
                data,
            )
        if path_contains is not None and path_contains not in principal.path:
            return _failed(
                op,
                "CHECK_FAILED",
                f"Path {principal.path} of {principal_id} does not contain {path_contains!r}",
                data,
            )
        return ServiceResult(ok=True, op=op, data=data)

    def check_enabled(self, principal_id: str) -> ServiceResult:
        op = "check_enabled"
        principal = self._lookup(principal_id)
        data = _principal_data(principal_id, principal)
        if principal is None:
            return _failed(op, "PRINCIPAL_NOT_FOUND", f"Principal not found: {principal_id}", data)
        if not principal.enabled:
            return _failed(op, "CHECK_FAILED", f"Principal {principal_id} is disabled", data)
        return ServiceResult(ok=True, op=op, data=data)

    def check_disabled(self, principal_id: str, *, reason: str | None = None) -> ServiceResult:
        op = "check_disabled"
        principal = self._lookup(principal_id)
        data = _principal_data(principal_id, principal)
        if principal is None:
            return _failed(op, "PRINCIPAL_NOT_FOUND", f"Principal not found: {principal_id}", data)
        if principal.enabled:
            return _failed(op, "CHECK_FAILED", f"Principal {principal_id} is enabled", data)
        if reason is not None and principal.disabled_reason != reason:
            return _failed(
                op,
                "CHECK_FAILED",
                f"Principal {principal_id} is disabled with reason "
                f"{principal.disabled_reason!r}, not {reason!r}",
                data,
            )
        return ServiceResult(ok=True, op=op, data=data)

    def check_node(
        self,
        path: str,
        *,
        primary_type: str | None = None,
        mixins: Iterable[str] | None = None,
    ) -> ServiceResult:
        """Check that *path* exists, optionally with an exact type and mixin set."""
        op = "check_node"
        try:
            path = normalize_path(path)
            with self._repository.session() as session:
                node = NodeReconciler().verify(
                    session, path, primary_type=primary_type, mixins=mixins
                )
        except (
            InvalidPathError, NodeNotFoundError, NodeTypeMismatchError, MixinMismatchError
        ) as exc:
            return error_result(op, exc, data={"path": path})
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "path": node.path,
                "primary_type": node.primary_type,
                "mixins": sorted(node.mixins),
            },
        )
