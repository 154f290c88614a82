"""Error taxonomy for repoinit.

Two families:
- Parse errors: malformed script or CND text. Raised before any
  operation reaches the processor.
- Application errors: an operation could not be satisfied against the
  live repository. Raised by the repository driver or a reconciler and
  wrapped by the processor in :class:`OperationFailedError`.

Every error carries a stable ``code`` and a ``detail`` dict so the
service layer can turn it into a :class:`ServiceError` without string
matching.
"""

from __future__ import annotations

from typing import Any


class RepoinitError(Exception):
    """Base class for all repoinit errors."""

    code: str = "REPOINIT_ERROR"

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail: dict[str, Any] = detail


# ---------------------------------------------------------------------------
# Parse errors
# ---------------------------------------------------------------------------


class ScriptParseError(RepoinitError):
    """Malformed repoinit script text."""

    code = "PARSE_ERROR"

    def __init__(self, message: str, *, line: int | None = None, **detail: Any) -> None:
        self.reason = message
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message, line=line, **detail)
        self.line = line


class CndSyntaxError(ScriptParseError):
    """Malformed node type definition (CND) block."""

    code = "CND_SYNTAX_ERROR"


# ---------------------------------------------------------------------------
# Processor configuration errors
# ---------------------------------------------------------------------------


class UnsupportedOperationError(RepoinitError):
    """An item in the batch is not a known operation variant."""

    code = "UNSUPPORTED_OPERATION"


class OperationFailedError(RepoinitError):
    """An operation failed; the remaining batch was not applied.

    The underlying error is chained as ``__cause__`` and its code is
    reused so callers see ``PRINCIPAL_NOT_FOUND`` rather than a generic
    failure.
    """

    def __init__(
        self,
        *,
        index: int,
        operation: Any,
        cause: BaseException,
        applied: list[dict[str, Any]] | None = None,
    ) -> None:
        description = operation.describe()
        reason = cause.message if isinstance(cause, RepoinitError) else str(cause)
        super().__init__(
            f"Operation {index + 1} ({description}) failed: {reason}",
            index=index,
            operation=description,
            kind=operation.kind,
            target=operation.target,
            applied=applied or [],
        )
        self.code = cause.code if isinstance(cause, RepoinitError) else "REPOSITORY_ERROR"
        self.index = index
        self.operation = operation
        self.cause = cause
        if isinstance(cause, RepoinitError):
            self.detail.update({k: v for k, v in cause.detail.items() if k not in self.detail})


# ---------------------------------------------------------------------------
# Application errors
# ---------------------------------------------------------------------------


class RepositoryError(RepoinitError):
    """Base for errors raised while mutating or reading the repository."""

    code = "REPOSITORY_ERROR"


class PrincipalNotFoundError(RepositoryError):
    code = "PRINCIPAL_NOT_FOUND"


class PrincipalKindMismatchError(RepositoryError):
    code = "PRINCIPAL_KIND_MISMATCH"


class PrincipalPathError(RepositoryError):
    code = "INVALID_PRINCIPAL_PATH"


class InvalidPathError(RepositoryError):
    code = "INVALID_PATH"


class NodeNotFoundError(RepositoryError):
    code = "NODE_NOT_FOUND"


class NodeTypeMismatchError(RepositoryError):
    """Existing node has a different primary type than expected."""

    code = "PRIMARY_TYPE_MISMATCH"

    def __init__(self, path: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Primary type mismatch for {path}, expected {expected} but got {actual}",
            path=path,
            expected=expected,
            actual=actual,
        )


class MixinMismatchError(RepositoryError):
    """Existing node's mixin set differs from the expected set."""

    code = "MIXIN_MISMATCH"

    def __init__(self, path: str, expected: list[str], actual: list[str]) -> None:
        extra = sorted(set(actual) - set(expected))
        missing = sorted(set(expected) - set(actual))
        parts = []
        if extra:
            parts.append(f"unexpected {', '.join(extra)}")
        if missing:
            parts.append(f"missing {', '.join(missing)}")
        super().__init__(
            f"Mixin mismatch for {path}: {'; '.join(parts)}",
            path=path,
            expected=sorted(expected),
            actual=sorted(actual),
            extra=extra,
            missing=missing,
        )


class NoSuchNodeTypeError(RepositoryError):
    code = "NO_SUCH_NODE_TYPE"


class NodeTypeConflictError(RepositoryError):
    code = "NODE_TYPE_CONFLICT"


class NamespaceConflictError(RepositoryError):
    code = "NAMESPACE_CONFLICT"


class UnknownPrivilegeError(RepositoryError):
    code = "UNKNOWN_PRIVILEGE"


class UnknownNamespaceError(RepositoryError):
    code = "UNKNOWN_NAMESPACE"


class ItemExistsError(RepositoryError):
    code = "ITEM_EXISTS"
