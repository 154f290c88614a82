"""Principal model, directory capability, and placement rules.

Two mutually exclusive principal kinds share one directory keyed by id:
regular users (login-capable) and service users (system principals).
Placement rules keep the kinds apart in the hierarchy: service users
always live under the system-user root, regular users never do.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from repoinit.domain.errors import InvalidPathError, PrincipalPathError
from repoinit.domain.paths import is_descendant, join_path, normalize_path

DEFAULT_USERS_PATH = "/home/users"
DEFAULT_SYSTEM_USERS_PATH = "/home/users/system"


class PrincipalKind(StrEnum):
    """Kinds of principals managed by the directory."""

    USER = "user"
    SERVICE = "service"


@dataclass(frozen=True)
class Principal:
    """A principal as currently stored in the directory."""

    principal_id: str
    kind: PrincipalKind
    path: str
    disabled: bool = False
    disabled_reason: str | None = None

    @property
    def is_system_user(self) -> bool:
        return self.kind is PrincipalKind.SERVICE

    @property
    def enabled(self) -> bool:
        return not self.disabled


class PrincipalDirectory(Protocol):
    """Capability interface over the repository's user directory."""

    def lookup(self, principal_id: str) -> Principal | None: ...

    def create(
        self,
        principal_id: str,
        kind: PrincipalKind,
        path: str,
        *,
        password: str | None = None,
    ) -> Principal: ...

    def delete(self, principal_id: str) -> None: ...

    def set_enabled(
        self,
        principal_id: str,
        enabled: bool,
        *,
        reason: str | None = None,
    ) -> Principal: ...


@dataclass(frozen=True)
class PrincipalRoots:
    """Where each kind of principal is placed."""

    users_path: str = DEFAULT_USERS_PATH
    system_users_path: str = DEFAULT_SYSTEM_USERS_PATH

    def root_for(self, kind: PrincipalKind) -> str:
        return self.system_users_path if kind is PrincipalKind.SERVICE else self.users_path

    def check_placement(self, kind: PrincipalKind, path: str) -> None:
        """Raise if *path* is not a valid location for a *kind* principal."""
        in_system = is_descendant(path, self.system_users_path, include_self=True)
        if kind is PrincipalKind.SERVICE:
            if not is_descendant(path, self.system_users_path):
                msg = f"Service user path {path} must be below {self.system_users_path}"
                raise PrincipalPathError(msg, path=path, kind=str(kind))
            return
        if in_system or not is_descendant(path, self.users_path):
            msg = (
                f"User path {path} must be below {self.users_path} "
                f"and outside {self.system_users_path}"
            )
            raise PrincipalPathError(msg, path=path, kind=str(kind))


def resolve_principal_path(
    principal_id: str,
    kind: PrincipalKind,
    requested: str | None,
    roots: PrincipalRoots,
) -> str:
    """Compute the directory path for a new principal.

    A relative *requested* path is resolved below the users root (so
    service users typically ask for ``system/...``); an absolute one is
    taken as is. The principal itself is placed one
    level below the requested folder. Without a request, regular users
    are bucketed by the first character of their id.

    Raises:
        PrincipalPathError: If the resulting path violates the placement rules.
    """
    root = roots.root_for(kind)
    try:
        if requested:
            if requested.startswith("/"):
                folder = normalize_path(requested)
            else:
                folder = join_path(roots.users_path, requested)
        elif kind is PrincipalKind.SERVICE:
            folder = root
        else:
            folder = join_path(root, principal_id[0].lower())
        path = join_path(folder, principal_id)
    except InvalidPathError as exc:
        msg = f"Invalid path for principal {principal_id}: {exc.message}"
        raise PrincipalPathError(msg, path=requested or "") from exc
    roots.check_placement(kind, path)
    return path
