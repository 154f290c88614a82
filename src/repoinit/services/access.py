"""ACL applier — store allow/deny entries for existing principals."""

from __future__ import annotations

from typing import TYPE_CHECKING

from repoinit.domain.errors import PrincipalNotFoundError
from repoinit.domain.paths import normalize_path
from repoinit.services.report import OutcomeStatus

if TYPE_CHECKING:
    from repoinit.domain.operations import SetAcl
    from repoinit.infrastructure.repository import RepositorySession


class AclApplier:
    """Applies ``set ACL`` blocks. Entries are stored, never evaluated."""

    def apply(self, session: RepositorySession, op: SetAcl) -> OutcomeStatus:
        """Validate the whole block, then write its entries.

        Raises:
            PrincipalNotFoundError: If a named principal does not exist.
            NodeNotFoundError: If a target path does not exist.
            UnknownPrivilegeError: If a privilege is not known.
        """
        for principal_id in op.principals:
            if session.principals.lookup(principal_id) is None:
                msg = f"Principal not found: {principal_id}"
                raise PrincipalNotFoundError(msg, principal_id=principal_id)

        resolved: list[tuple[bool, tuple[str, ...], list[str]]] = []
        for entry in op.entries:
            for privilege in entry.privileges:
                session.access.check_privilege(privilege)
            paths = [normalize_path(p) for p in entry.paths]
            for path in paths:
                session.require_node(path)
            resolved.append((entry.action == "allow", entry.privileges, paths))

        changed = False
        for allow, privileges, paths in resolved:
            for path in paths:
                for principal_id in op.principals:
                    for privilege in privileges:
                        changed = (
                            session.access.set_entry(path, principal_id, privilege, allow=allow)
                            or changed
                        )
        return OutcomeStatus.UPDATED if changed else OutcomeStatus.UNCHANGED
