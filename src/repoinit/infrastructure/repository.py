"""Repository — the SQLite-backed content repository and its sessions.

The Repository is the single dependency injected into every service. It
owns the database engine and the plugin manager. Work happens in a
:class:`RepositorySession` bound to one connection:

- Every write accumulates as a pending change on that connection.
- Nothing is visible to other sessions until :meth:`RepositorySession.commit`.
- Leaving :meth:`Repository.session` without committing rolls back.

The session is the explicit handle passed to the operation processor and
its reconcilers; the repository never commits on anyone's behalf.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, or_, select

from repoinit.domain.errors import (
    InvalidPathError,
    ItemExistsError,
    NodeNotFoundError,
    NoSuchNodeTypeError,
)
from repoinit.domain.nodes import Node
from repoinit.domain.paths import ROOT_PATH, node_name, normalize_path, parent_path
from repoinit.domain.principals import PrincipalRoots
from repoinit.infrastructure.access import AccessControl
from repoinit.infrastructure.database.engine import init_database, utc_timestamp
from repoinit.infrastructure.database.schema import node_mixins, nodes
from repoinit.infrastructure.directory import SqlPrincipalDirectory
from repoinit.infrastructure.nodetypes import NodeTypeManager

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from repoinit.config.settings import RepoinitSettings
    from repoinit.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# RepositorySession — yielded to callers within session()
# ---------------------------------------------------------------------------


class RepositorySession:
    """One unit of work against the repository.

    Exposes node primitives directly, plus the principal directory
    (:attr:`principals`), the schema registry (:attr:`node_types`) and
    access control entries (:attr:`access`), all on the same connection.

    Not safe for concurrent use.
    """

    def __init__(self, conn: Connection, *, roots: PrincipalRoots | None = None) -> None:
        self._conn = conn
        self._roots = roots or PrincipalRoots()
        self._pending = 0
        self._closed = False
        self.principals = SqlPrincipalDirectory(conn, on_write=self._touch)
        self.node_types = NodeTypeManager(conn, on_write=self._touch)
        self.access = AccessControl(conn, on_write=self._touch)

    def _touch(self) -> None:
        self._pending += 1

    @property
    def conn(self) -> Connection:
        """The underlying connection (for direct reads when needed)."""
        return self._conn

    @property
    def roots(self) -> PrincipalRoots:
        """Where regular and service users are placed."""
        return self._roots

    @property
    def has_pending_changes(self) -> bool:
        return self._pending > 0

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def node_exists(self, path: str) -> bool:
        row = self._conn.execute(select(nodes.c.path).where(nodes.c.path == path)).first()
        return row is not None

    def get_node(self, path: str) -> Node | None:
        """Return the node at *path* with its explicitly assigned mixins."""
        row = self._conn.execute(
            select(nodes.c.path, nodes.c.primary_type).where(nodes.c.path == path)
        ).first()
        if row is None:
            return None
        mixins = self._conn.scalars(select(node_mixins.c.mixin).where(node_mixins.c.path == path))
        return Node(path=row.path, primary_type=row.primary_type, mixins=frozenset(mixins))

    def require_node(self, path: str) -> Node:
        """Like :meth:`get_node` but raises :class:`NodeNotFoundError`."""
        node = self.get_node(path)
        if node is None:
            msg = f"Node not found: {path}"
            raise NodeNotFoundError(msg, path=path)
        return node

    def children(self, path: str) -> list[str]:
        return list(
            self._conn.scalars(
                select(nodes.c.path).where(nodes.c.parent == path).order_by(nodes.c.path)
            )
        )

    def add_node(self, path: str, primary_type: str) -> Node:
        """Create a single node below an existing parent.

        Raises:
            InvalidPathError: If *path* is malformed or the root.
            ItemExistsError: If a node already exists at *path*.
            NodeNotFoundError: If the parent does not exist.
            NoSuchNodeTypeError: If *primary_type* is unknown, a mixin, or abstract.
        """
        path = normalize_path(path)
        parent = parent_path(path)
        if parent is None:
            msg = "The root node cannot be created"
            raise InvalidPathError(msg, path=path)
        if self.node_exists(path):
            msg = f"Node already exists: {path}"
            raise ItemExistsError(msg, path=path)
        if not self.node_exists(parent):
            msg = f"Parent node not found: {parent}"
            raise NodeNotFoundError(msg, path=parent)

        definition = self.node_types.require_node_type(primary_type, mixin=False)
        if definition.is_abstract:
            msg = f"Cannot create node {path} with abstract type {primary_type}"
            raise NoSuchNodeTypeError(msg, node_type=primary_type, path=path)

        self._conn.execute(
            insert(nodes).values(
                path=path,
                parent=parent,
                name=node_name(path),
                primary_type=primary_type,
                created=utc_timestamp(),
            )
        )
        self._touch()
        logger.debug("Added node %s (%s)", path, primary_type)
        return Node(path=path, primary_type=primary_type)

    def remove_node(self, path: str) -> int:
        """Remove the node at *path*, its subtree and their ACL entries.

        Returns the number of nodes removed.

        Raises:
            InvalidPathError: For the root.
            NodeNotFoundError: If there is no node at *path*.
        """
        if path == ROOT_PATH:
            msg = "The root node cannot be removed"
            raise InvalidPathError(msg, path=path)
        self.require_node(path)

        in_subtree = or_(
            nodes.c.path == path, nodes.c.path.startswith(path + "/", autoescape=True)
        )
        subtree = select(nodes.c.path).where(in_subtree)
        self._conn.execute(delete(node_mixins).where(node_mixins.c.path.in_(subtree)))
        result = self._conn.execute(delete(nodes).where(in_subtree))
        self.access.remove_under(path)
        self._touch()
        logger.debug("Removed %d node(s) at %s", result.rowcount, path)
        return result.rowcount

    def add_mixin(self, path: str, mixin: str) -> bool:
        """Assign *mixin* to the node at *path*. Returns True if it was added.

        A mixin the node already carries, explicitly or through its
        primary type, is left alone.

        Raises:
            NodeNotFoundError: If there is no node at *path*.
            NoSuchNodeTypeError: If *mixin* is not a registered mixin type.
        """
        node = self.require_node(path)
        self.node_types.require_node_type(mixin, mixin=True)
        if mixin in node.mixins or self.node_types.is_node_type(node.primary_type, mixin):
            return False
        self._conn.execute(insert(node_mixins).values(path=path, mixin=mixin))
        self._touch()
        return True

    def remove_mixin(self, path: str, mixin: str) -> bool:
        """Remove *mixin* from the node at *path*. Returns True if it was present.

        Raises:
            NodeNotFoundError: If there is no node at *path*.
            NoSuchNodeTypeError: If *mixin* is not a registered mixin type.
        """
        node = self.require_node(path)
        self.node_types.require_node_type(mixin, mixin=True)
        if mixin not in node.mixins:
            return False
        self._conn.execute(
            delete(node_mixins).where(node_mixins.c.path == path, node_mixins.c.mixin == mixin)
        )
        self._touch()
        return True

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    def commit(self) -> None:
        """Make all pending changes durable and visible to other sessions."""
        self._conn.commit()
        logger.debug("Committed %d change(s)", self._pending)
        self._pending = 0

    def rollback(self) -> None:
        """Discard all pending changes."""
        self._conn.rollback()
        if self._pending:
            logger.debug("Rolled back %d change(s)", self._pending)
        self._pending = 0

    def close(self) -> None:
        """Roll back anything uncommitted and release the connection."""
        if self._closed:
            return
        try:
            self.rollback()
        finally:
            self._conn.close()
            self._closed = True


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class Repository:
    """Content repository backed by ``.repoinit/repository.db``.

    Constructed once at CLI startup from :class:`RepoinitSettings` and
    stored in ``click.Context.obj``. Services receive the Repository via
    their :class:`BaseService` constructor.
    """

    def __init__(self, settings: RepoinitSettings) -> None:
        self._settings = settings
        self._engine: Engine = init_database(
            self.root, lock_timeout=settings.repository.lock_timeout
        )
        self._plugin_manager: Any | None = None
        self._roots = PrincipalRoots(
            users_path=settings.principals.users_path,
            system_users_path=settings.principals.system_users_path,
        )
        self._bootstrap()

    def _bootstrap(self) -> None:
        with self.session() as session:
            if session.node_types.bootstrap():
                session.commit()
                logger.debug("Registered built-in namespaces and node types")

    @property
    def root(self) -> Path:
        """The repository root directory."""
        return self._settings.repository_root

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    @property
    def settings(self) -> RepoinitSettings:
        """The resolved settings for this repository."""
        return self._settings

    @property
    def principal_roots(self) -> PrincipalRoots:
        return self._roots

    @property
    def plugin_manager(self) -> PluginManager | None:
        """The plugin manager (None if not initialized)."""
        return self._plugin_manager

    def init_plugins(self) -> None:
        """Discover entry-point and local plugins.

        Local plugins are single files in ``.repoinit/plugins/``. Called
        by AppContext when the repository is first accessed.
        """
        from repoinit.plugins.manager import PluginManager

        pm = PluginManager()
        pm.discover_and_load(local_dir=self.root / ".repoinit" / "plugins")
        self._plugin_manager = pm

    @contextmanager
    def session(self) -> Iterator[RepositorySession]:
        """Open a session on a fresh connection.

        Pending changes are discarded on exit unless the caller has
        committed them.

        Usage::

            with repository.session() as session:
                OperationProcessor().apply(session, operations)
                session.commit()
        """
        session = RepositorySession(self._engine.connect(), roots=self._roots)
        try:
            yield session
        finally:
            session.close()

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()
