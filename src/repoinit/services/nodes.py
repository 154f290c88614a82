"""Node reconciler — create/verify, delete, and mixin changes.

A create on an existing node is a verification: the given primary type
and mixin set must match what is stored, otherwise the batch fails.
Unset constraints are not checked.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from repoinit.domain.errors import MixinMismatchError, NodeTypeMismatchError
from repoinit.domain.paths import ancestors, normalize_path
from repoinit.services.report import OutcomeStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from repoinit.domain.nodes import Node
    from repoinit.domain.operations import AddMixins, CreateNode, DeleteNode, RemoveMixins
    from repoinit.infrastructure.repository import RepositorySession

DEFAULT_NODE_TYPE = "nt:unstructured"


class NodeReconciler:
    """Applies node operations to a session."""

    def __init__(self, default_node_type: str = DEFAULT_NODE_TYPE) -> None:
        self._default_node_type = default_node_type

    def ensure(self, session: RepositorySession, op: CreateNode) -> OutcomeStatus:
        path = normalize_path(op.path)
        if session.node_exists(path):
            self.verify(session, path, primary_type=op.primary_type, mixins=op.mixins)
            return OutcomeStatus.EXISTS

        intermediate = op.intermediate_type or self._default_node_type
        for ancestor in ancestors(path):
            if not session.node_exists(ancestor):
                session.add_node(ancestor, intermediate)
        session.add_node(path, op.primary_type or self._default_node_type)
        for mixin in op.mixins or ():
            session.add_mixin(path, mixin)
        return OutcomeStatus.CREATED

    def verify(
        self,
        session: RepositorySession,
        path: str,
        *,
        primary_type: str | None = None,
        mixins: Iterable[str] | None = None,
    ) -> Node:
        """Check the node at *path* against the given constraints.

        Raises:
            NodeNotFoundError: If there is no node at *path*.
            NodeTypeMismatchError: If *primary_type* differs from the node's.
            MixinMismatchError: If *mixins* is not exactly the node's mixin set.
                Mixins the primary type already inherits are never stored, so
                they are satisfied without appearing in that set.
        """
        node = session.require_node(path)
        if primary_type is not None and node.primary_type != primary_type:
            raise NodeTypeMismatchError(path, primary_type, node.primary_type)
        if mixins is not None:
            expected = sorted(
                m for m in set(mixins) if not session.node_types.is_node_type(node.primary_type, m)
            )
            if set(expected) != node.mixins:
                raise MixinMismatchError(path, expected, sorted(node.mixins))
        return node

    def delete(self, session: RepositorySession, op: DeleteNode) -> OutcomeStatus:
        path = normalize_path(op.path)
        if not session.node_exists(path):
            return OutcomeStatus.ABSENT
        session.remove_node(path)
        return OutcomeStatus.DELETED

    def add_mixins(self, session: RepositorySession, op: AddMixins) -> OutcomeStatus:
        paths = self._existing(session, op.paths)
        changed = False
        for path in paths:
            for mixin in op.mixins:
                changed = session.add_mixin(path, mixin) or changed
        return OutcomeStatus.UPDATED if changed else OutcomeStatus.UNCHANGED

    def remove_mixins(self, session: RepositorySession, op: RemoveMixins) -> OutcomeStatus:
        paths = self._existing(session, op.paths)
        changed = False
        for path in paths:
            for mixin in op.mixins:
                changed = session.remove_mixin(path, mixin) or changed
        return OutcomeStatus.UPDATED if changed else OutcomeStatus.UNCHANGED

    @staticmethod
    def _existing(session: RepositorySession, paths: Iterable[str]) -> list[str]:
        """Normalize *paths*, failing on the first one that doesn't exist."""
        resolved = [normalize_path(p) for p in paths]
        for path in resolved:
            session.require_node(path)
        return resolved
