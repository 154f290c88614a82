"""Access control entries — stored, never evaluated.

Each entry binds one principal to one privilege on one path with an
allow/deny flag. The (path, principal, privilege) triple is unique, so
an ``allow`` replaces a ``deny`` of the same triple and vice versa.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, or_, select, update

from repoinit.domain.errors import UnknownPrivilegeError
from repoinit.infrastructure.database.engine import utc_timestamp
from repoinit.infrastructure.database.schema import acl_entries

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy import Connection

KNOWN_PRIVILEGES: frozenset[str] = frozenset(
    {
        "jcr:all",
        "jcr:read",
        "jcr:write",
        "jcr:modifyProperties",
        "jcr:addChildNodes",
        "jcr:removeNode",
        "jcr:removeChildNodes",
        "jcr:readAccessControl",
        "jcr:modifyAccessControl",
        "jcr:lockManagement",
        "jcr:versionManagement",
        "jcr:nodeTypeManagement",
        "jcr:retentionManagement",
        "jcr:lifecycleManagement",
        "jcr:namespaceManagement",
        "jcr:nodeTypeDefinitionManagement",
        "jcr:workspaceManagement",
        "rep:write",
        "rep:readNodes",
        "rep:readProperties",
        "rep:addProperties",
        "rep:alterProperties",
        "rep:removeProperties",
        "rep:userManagement",
        "rep:privilegeManagement",
        "rep:indexDefinitionManagement",
    }
)


@dataclass(frozen=True)
class AccessControlEntry:
    path: str
    principal_id: str
    privilege: str
    allow: bool


class AccessControl:
    """ACL entries of the repository, bound to one session connection."""

    def __init__(self, conn: Connection, *, on_write: Callable[[], None]) -> None:
        self._conn = conn
        self._on_write = on_write

    @staticmethod
    def check_privilege(privilege: str) -> None:
        if privilege not in KNOWN_PRIVILEGES:
            msg = f"Unknown privilege: {privilege}"
            raise UnknownPrivilegeError(msg, privilege=privilege)

    def set_entry(self, path: str, principal_id: str, privilege: str, *, allow: bool) -> bool:
        """Store one entry. Returns True if anything changed.

        Raises:
            UnknownPrivilegeError: If *privilege* is not a known privilege.
        """
        self.check_privilege(privilege)
        key = (
            (acl_entries.c.path == path)
            & (acl_entries.c.principal_id == principal_id)
            & (acl_entries.c.privilege == privilege)
        )
        row = self._conn.execute(select(acl_entries.c.allow).where(key)).first()
        if row is not None and bool(row.allow) == allow:
            return False
        if row is None:
            self._conn.execute(
                insert(acl_entries).values(
                    path=path,
                    principal_id=principal_id,
                    privilege=privilege,
                    allow=int(allow),
                    created=utc_timestamp(),
                )
            )
        else:
            self._conn.execute(update(acl_entries).where(key).values(allow=int(allow)))
        self._on_write()
        return True

    def entries(
        self, *, path: str | None = None, principal_id: str | None = None
    ) -> list[AccessControlEntry]:
        stmt = select(acl_entries).order_by(
            acl_entries.c.path, acl_entries.c.principal_id, acl_entries.c.privilege
        )
        if path is not None:
            stmt = stmt.where(acl_entries.c.path == path)
        if principal_id is not None:
            stmt = stmt.where(acl_entries.c.principal_id == principal_id)
        return [
            AccessControlEntry(
                path=row.path,
                principal_id=row.principal_id,
                privilege=row.privilege,
                allow=bool(row.allow),
            )
            for row in self._conn.execute(stmt)
        ]

    def remove_under(self, path: str) -> int:
        """Drop entries on *path* and its descendants. Returns the count removed."""
        condition = acl_entries.c.path == path
        if path != "/":
            condition = or_(condition, acl_entries.c.path.startswith(path + "/", autoescape=True))
        result = self._conn.execute(delete(acl_entries).where(condition))
        if result.rowcount:
            self._on_write()
        return result.rowcount
