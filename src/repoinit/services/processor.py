"""OperationProcessor — apply an ordered batch of operations to one session.

Pipeline: CHECK (every item is a known variant) → DISPATCH (in order,
one handler per variant) → REPORT.

INVARIANT: The processor never commits. All changes stay pending on the
caller's session; the caller commits once after the whole batch
succeeds, or discards the session.

INVARIANT: The first failing operation stops the batch. Operations after
it are never attempted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

import structlog
from sqlalchemy.exc import SQLAlchemyError

from repoinit.domain.errors import (
    OperationFailedError,
    RepoinitError,
    UnsupportedOperationError,
)
from repoinit.domain.operations import (
    OPERATION_TYPES,
    AddMixins,
    CreateNode,
    CreateServiceUser,
    CreateUser,
    DeleteNode,
    DeleteServiceUser,
    DeleteUser,
    DisableUser,
    EnableUser,
    RegisterNamespace,
    RegisterNodeTypes,
    RemoveMixins,
    SetAcl,
)
from repoinit.services.access import AclApplier
from repoinit.services.nodes import DEFAULT_NODE_TYPE, NodeReconciler
from repoinit.services.principals import PrincipalReconciler
from repoinit.services.report import ApplyReport, OperationOutcome, OutcomeStatus
from repoinit.services.schema import SchemaRegistrar

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repoinit.domain.operations import Operation
    from repoinit.infrastructure.repository import RepositorySession

log = structlog.get_logger(__name__)


class OperationProcessor:
    """Dispatches each operation to the reconciler that owns its kind.

    Stateless between calls; one instance can serve any number of
    sessions sequentially.
    """

    def __init__(self, *, default_node_type: str = DEFAULT_NODE_TYPE) -> None:
        self._principals = PrincipalReconciler()
        self._nodes = NodeReconciler(default_node_type)
        self._schema = SchemaRegistrar()
        self._acl = AclApplier()

    @property
    def nodes(self) -> NodeReconciler:
        return self._nodes

    def apply(
        self, session: RepositorySession, operations: Sequence[Operation]
    ) -> ApplyReport:
        """Apply *operations* in order against *session*.

        Raises:
            UnsupportedOperationError: If any item is not a known operation;
                raised before anything is applied.
            OperationFailedError: On the first operation that fails; the
                underlying error is chained as ``__cause__``.
        """
        self.check(operations)

        outcomes: list[OperationOutcome] = []
        for index, operation in enumerate(operations):
            try:
                status = self._dispatch(session, operation)
            except (RepoinitError, SQLAlchemyError) as exc:
                log.warning(
                    "operation.failed",
                    index=index,
                    kind=operation.kind,
                    target=operation.target,
                    error=type(exc).__name__,
                )
                raise OperationFailedError(
                    index=index,
                    operation=operation,
                    cause=exc,
                    applied=[o.model_dump(mode="json") for o in outcomes],
                ) from exc

            outcomes.append(
                OperationOutcome(
                    index=index,
                    kind=operation.kind,
                    target=operation.target,
                    status=status,
                )
            )
            log.info(
                "operation.applied",
                index=index,
                kind=operation.kind,
                target=operation.target,
                status=status.value,
            )
        return ApplyReport(outcomes=outcomes)

    @staticmethod
    def check(operations: Sequence[object]) -> None:
        """Reject any item that is not one of the known operation variants."""
        for index, operation in enumerate(operations):
            if not isinstance(operation, OPERATION_TYPES):
                msg = f"Unsupported operation at index {index}: {type(operation).__name__}"
                raise UnsupportedOperationError(
                    msg, index=index, type=type(operation).__name__
                )

    def _dispatch(self, session: RepositorySession, operation: Operation) -> OutcomeStatus:
        match operation:
            case CreateUser() | CreateServiceUser():
                return self._principals.create(session, operation)
            case DeleteUser() | DeleteServiceUser():
                return self._principals.delete(session, operation)
            case DisableUser():
                return self._principals.disable(session, operation)
            case EnableUser():
                return self._principals.enable(session, operation)
            case CreateNode():
                return self._nodes.ensure(session, operation)
            case DeleteNode():
                return self._nodes.delete(session, operation)
            case AddMixins():
                return self._nodes.add_mixins(session, operation)
            case RemoveMixins():
                return self._nodes.remove_mixins(session, operation)
            case RegisterNamespace():
                return self._schema.register_namespace(session, operation)
            case RegisterNodeTypes():
                return self._schema.register_node_types(session, operation)
            case SetAcl():
                return self._acl.apply(session, operation)
            case _:
                assert_never(operation)
