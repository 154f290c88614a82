"""Schema registrar — namespaces and CND node type blocks."""

from __future__ import annotations

from typing import TYPE_CHECKING

from repoinit.domain.cnd import parse_cnd, unwrap_cnd
from repoinit.services.report import OutcomeStatus

if TYPE_CHECKING:
    from repoinit.domain.operations import RegisterNamespace, RegisterNodeTypes
    from repoinit.infrastructure.repository import RepositorySession


class SchemaRegistrar:
    """Applies schema operations to a session's node type manager."""

    def register_namespace(
        self, session: RepositorySession, op: RegisterNamespace
    ) -> OutcomeStatus:
        if session.node_types.register_namespace(op.prefix, op.uri):
            return OutcomeStatus.REGISTERED
        return OutcomeStatus.UNCHANGED

    def register_node_types(
        self, session: RepositorySession, op: RegisterNodeTypes
    ) -> OutcomeStatus:
        """Register the namespaces of the block first, then its types.

        Raises:
            CndSyntaxError: If the block is malformed or a marker is missing.
            NamespaceConflictError: If a declared prefix is bound elsewhere.
            NodeTypeConflictError: If a registered type would change incompatibly.
        """
        document = parse_cnd(unwrap_cnd(op.cnd))
        new_namespace = False
        for namespace in document.namespaces:
            new_namespace = (
                session.node_types.register_namespace(namespace.prefix, namespace.uri)
                or new_namespace
            )
        statuses = set(session.node_types.register_node_types(document.node_types).values())
        if "registered" in statuses or new_namespace:
            return OutcomeStatus.REGISTERED
        if "updated" in statuses:
            return OutcomeStatus.UPDATED
        return OutcomeStatus.UNCHANGED
