"""SQLite-backed principal directory.

Implements :class:`repoinit.domain.principals.PrincipalDirectory` over
the ``principals`` table of one session connection. Passwords are never
stored in clear text (bcrypt with a per-password salt).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

import bcrypt
from sqlalchemy import delete, insert, select, update

from repoinit.domain.errors import PrincipalNotFoundError, PrincipalPathError
from repoinit.domain.principals import Principal, PrincipalKind
from repoinit.infrastructure.database.engine import utc_timestamp
from repoinit.infrastructure.database.schema import acl_entries, principals

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy import Connection, Row

logger = logging.getLogger(__name__)

_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes; newer releases reject longer input.
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Return a salted bcrypt hash of *password*."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, encoded: str) -> bool:
    """Check *password* against a hash from :func:`hash_password`."""
    try:
        return bcrypt.checkpw(_password_bytes(password), encoded.encode("ascii"))
    except ValueError:
        return False


def _to_principal(row: Row) -> Principal:
    return Principal(
        principal_id=row.id,
        kind=PrincipalKind(row.kind),
        path=row.path,
        disabled=bool(row.disabled),
        disabled_reason=row.disabled_reason,
    )


class SqlPrincipalDirectory:
    """User directory stored in the repository database."""

    def __init__(self, conn: Connection, *, on_write: Callable[[], None]) -> None:
        self._conn = conn
        self._on_write = on_write

    def lookup(self, principal_id: str) -> Principal | None:
        row = self._conn.execute(select(principals).where(principals.c.id == principal_id)).first()
        return _to_principal(row) if row is not None else None

    def list(self, kind: PrincipalKind | None = None) -> list[Principal]:
        stmt = select(principals).order_by(principals.c.id)
        if kind is not None:
            stmt = stmt.where(principals.c.kind == kind.value)
        return [_to_principal(row) for row in self._conn.execute(stmt)]

    def create(
        self,
        principal_id: str,
        kind: PrincipalKind,
        path: str,
        *,
        password: str | None = None,
    ) -> Principal:
        """Insert a new principal at *path*.

        Raises:
            PrincipalPathError: If another principal already occupies *path*.
        """
        occupant = self._conn.execute(
            select(principals.c.id).where(principals.c.path == path)
        ).first()
        if occupant is not None:
            msg = f"Path {path} is already used by principal {occupant.id}"
            raise PrincipalPathError(msg, path=path, occupant=occupant.id)

        self._conn.execute(
            insert(principals).values(
                id=principal_id,
                kind=kind.value,
                path=path,
                disabled=0,
                password_hash=hash_password(password) if password else None,
                created=utc_timestamp(),
            )
        )
        self._on_write()
        logger.debug("Created %s principal %s at %s", kind, principal_id, path)
        return Principal(principal_id=principal_id, kind=kind, path=path)

    def delete(self, principal_id: str) -> None:
        """Remove *principal_id* and every ACL entry naming it."""
        self._conn.execute(delete(acl_entries).where(acl_entries.c.principal_id == principal_id))
        self._conn.execute(delete(principals).where(principals.c.id == principal_id))
        self._on_write()

    def set_enabled(
        self,
        principal_id: str,
        enabled: bool,
        *,
        reason: str | None = None,
    ) -> Principal:
        """Toggle the disabled flag; *reason* is kept only while disabled.

        Raises:
            PrincipalNotFoundError: If the principal does not exist.
        """
        current = self.lookup(principal_id)
        if current is None:
            msg = f"Principal not found: {principal_id}"
            raise PrincipalNotFoundError(msg, principal_id=principal_id)
        stored_reason = None if enabled else (reason or "")
        self._conn.execute(
            update(principals)
            .where(principals.c.id == principal_id)
            .values(disabled=0 if enabled else 1, disabled_reason=stored_reason)
        )
        self._on_write()
        return replace(current, disabled=not enabled, disabled_reason=stored_reason)

    def check_password(self, principal_id: str, password: str) -> bool:
        row = self._conn.execute(
            select(principals.c.password_hash).where(principals.c.id == principal_id)
        ).first()
        if row is None or row.password_hash is None:
            return False
        return verify_password(password, row.password_hash)
