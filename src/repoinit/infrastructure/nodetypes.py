"""NodeTypeManager — namespace and node type registry on one connection.

The registry lives in the ``namespaces`` and ``node_types`` tables. The
type hierarchy is loaded lazily into a NetworkX DiGraph (edge from a
type to each of its supertypes) and invalidated on every registration,
the same lazy-rebuild approach the repository uses everywhere a graph
view of relational data is needed.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import networkx as nx
from sqlalchemy import insert, select, update

from repoinit.domain.cnd import NodeTypeDefinition, parse_cnd
from repoinit.domain.errors import (
    NamespaceConflictError,
    NodeTypeConflictError,
    NoSuchNodeTypeError,
    UnknownNamespaceError,
)
from repoinit.infrastructure.database.engine import utc_timestamp
from repoinit.infrastructure.database.schema import namespaces, node_types

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy import Connection

logger = logging.getLogger(__name__)

BASE_NODE_TYPE = "nt:base"

BUILTIN_CND = """\
<jcr='http://www.jcp.org/jcr/1.0'>
<nt='http://www.jcp.org/jcr/nt/1.0'>
<mix='http://www.jcp.org/jcr/mix/1.0'>
<rep='internal'>
<sling='http://sling.apache.org/jcr/sling/1.0'>

[nt:base] abstract
  - jcr:primaryType (name) mandatory autocreated protected
  - jcr:mixinTypes (name) protected multiple

[nt:unstructured] orderable
  - * (undefined) multiple
  - * (undefined)
  + * (nt:base) = nt:unstructured sns version

[nt:hierarchyNode] > mix:created abstract

[nt:folder] > nt:hierarchyNode
  + * (nt:hierarchyNode) version

[nt:file] > nt:hierarchyNode primaryitem jcr:content
  + jcr:content (nt:base) mandatory

[nt:resource] > mix:mimeType, mix:lastModified primaryitem jcr:data
  - jcr:data (binary) mandatory

[mix:created] mixin
  - jcr:created (date) autocreated protected
  - jcr:createdBy (string) autocreated protected

[mix:lastModified] mixin
  - jcr:lastModified (date) autocreated
  - jcr:lastModifiedBy (string) autocreated

[mix:mimeType] mixin
  - jcr:mimeType (string)
  - jcr:encoding (string)

[mix:title] mixin
  - jcr:title (string)
  - jcr:description (string)

[mix:language] mixin
  - jcr:language (string)

[mix:referenceable] mixin
  - jcr:uuid (string) mandatory autocreated protected

[mix:lockable] mixin

[mix:versionable] > mix:referenceable mixin

[rep:root] > nt:unstructured

[rep:AccessControllable] mixin

[sling:Folder] > nt:folder
  - * (undefined) multiple
  - * (undefined)
  + * (nt:base) = sling:Folder version

[sling:OrderedFolder] > sling:Folder orderable
  + * (nt:base) = sling:OrderedFolder version
"""


def _effective_supertypes(definition: NodeTypeDefinition) -> frozenset[str]:
    """Declared supertypes, with ``nt:base`` implied for every primary type."""
    declared = frozenset(definition.supertypes)
    if definition.is_mixin or definition.name == BASE_NODE_TYPE:
        return declared
    return declared | {BASE_NODE_TYPE}


class NodeTypeManager:
    """Namespaces and node types registered in the repository."""

    def __init__(self, conn: Connection, *, on_write: Callable[[], None]) -> None:
        self._conn = conn
        self._on_write = on_write
        self._hierarchy: nx.DiGraph | None = None

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    def namespace_uri(self, prefix: str) -> str | None:
        row = self._conn.execute(
            select(namespaces.c.uri).where(namespaces.c.prefix == prefix)
        ).first()
        return row.uri if row is not None else None

    def list_namespaces(self) -> dict[str, str]:
        rows = self._conn.execute(select(namespaces).order_by(namespaces.c.prefix))
        return {row.prefix: row.uri for row in rows}

    def register_namespace(self, prefix: str, uri: str) -> bool:
        """Bind *prefix* to *uri*. Returns True if the binding is new.

        Raises:
            NamespaceConflictError: If either side is already bound elsewhere.
        """
        current = self.namespace_uri(prefix)
        if current == uri:
            return False
        if current is not None:
            msg = f"Namespace prefix {prefix!r} is already bound to {current}"
            raise NamespaceConflictError(msg, prefix=prefix, uri=uri, existing=current)

        owner = self._conn.execute(
            select(namespaces.c.prefix).where(namespaces.c.uri == uri)
        ).first()
        if owner is not None:
            msg = f"Namespace URI {uri} is already bound to prefix {owner.prefix!r}"
            raise NamespaceConflictError(msg, prefix=prefix, uri=uri, existing=owner.prefix)

        self._conn.execute(
            insert(namespaces).values(prefix=prefix, uri=uri, registered=utc_timestamp())
        )
        self._on_write()
        logger.debug("Registered namespace %s -> %s", prefix, uri)
        return True

    # ------------------------------------------------------------------
    # Node types
    # ------------------------------------------------------------------

    def has_node_type(self, name: str) -> bool:
        row = self._conn.execute(
            select(node_types.c.name).where(node_types.c.name == name)
        ).first()
        return row is not None

    def get_node_type(self, name: str) -> NodeTypeDefinition | None:
        """Return the registered definition of *name*, or None."""
        row = self._conn.execute(select(node_types).where(node_types.c.name == name)).first()
        if row is None:
            return None
        return parse_cnd(row.definition).node_types[0]

    def require_node_type(self, name: str, *, mixin: bool | None = None) -> NodeTypeDefinition:
        """Return the definition of *name*, checking its mixin flag if given.

        Raises:
            NoSuchNodeTypeError: If the type is unknown or of the wrong kind.
        """
        definition = self.get_node_type(name)
        if definition is None:
            msg = f"No such node type: {name}"
            raise NoSuchNodeTypeError(msg, node_type=name)
        if mixin is True and not definition.is_mixin:
            msg = f"{name} is not a mixin type"
            raise NoSuchNodeTypeError(msg, node_type=name)
        if mixin is False and definition.is_mixin:
            msg = f"{name} is a mixin type and cannot be a primary type"
            raise NoSuchNodeTypeError(msg, node_type=name)
        return definition

    @property
    def hierarchy(self) -> nx.DiGraph:
        """Type → supertype graph, built from the registry on first access."""
        if self._hierarchy is None:
            g = nx.DiGraph()
            for row in self._conn.execute(select(node_types.c.name, node_types.c.supertypes)):
                g.add_node(row.name)
                for supertype in json.loads(row.supertypes):
                    g.add_edge(row.name, supertype)
            self._hierarchy = g
        return self._hierarchy

    def supertypes_of(self, name: str) -> set[str]:
        """All direct and inherited supertypes of *name*."""
        if name not in self.hierarchy:
            return set()
        return set(nx.descendants(self.hierarchy, name))

    def is_node_type(self, name: str, other: str) -> bool:
        """Whether *name* is *other* or inherits from it."""
        return name == other or other in self.supertypes_of(name)

    def register_node_types(self, definitions: Sequence[NodeTypeDefinition]) -> dict[str, str]:
        """Register a batch of definitions atomically on this connection.

        Forward references inside the batch are allowed. Returns a map of
        type name to ``registered``, ``updated`` or ``unchanged``.

        Raises:
            UnknownNamespaceError: If a type name uses an unregistered prefix.
            NoSuchNodeTypeError: If a supertype is neither registered nor in the batch.
            NodeTypeConflictError: On duplicates, changed supertypes or mixin
                flag, or an inheritance cycle.
        """
        batch: dict[str, NodeTypeDefinition] = {}
        for definition in definitions:
            if definition.name in batch:
                msg = f"Node type {definition.name} defined twice in one block"
                raise NodeTypeConflictError(msg, node_type=definition.name)
            prefix = definition.prefix
            if prefix is not None and self.namespace_uri(prefix) is None:
                msg = f"Unknown namespace prefix {prefix!r} in node type {definition.name}"
                raise UnknownNamespaceError(msg, prefix=prefix, node_type=definition.name)
            batch[definition.name] = definition

        existing = {
            row.name: row
            for row in self._conn.execute(
                select(node_types).where(node_types.c.name.in_(list(batch)))
            )
        }

        statuses: dict[str, str] = {}
        for name, definition in batch.items():
            supertypes = _effective_supertypes(definition)
            row = existing.get(name)
            if row is None:
                statuses[name] = "registered"
            else:
                stored = frozenset(json.loads(row.supertypes))
                if stored != supertypes or bool(row.is_mixin) != definition.is_mixin:
                    msg = (
                        f"Node type {name} is already registered with supertypes "
                        f"[{', '.join(sorted(stored))}] and mixin={bool(row.is_mixin)}"
                    )
                    raise NodeTypeConflictError(
                        msg,
                        node_type=name,
                        registered_supertypes=sorted(stored),
                        requested_supertypes=sorted(supertypes),
                    )
                same = row.definition == definition.source
                statuses[name] = "unchanged" if same else "updated"

            for supertype in supertypes:
                if supertype not in batch and not self.has_node_type(supertype):
                    msg = f"Unknown supertype {supertype} for node type {name}"
                    raise NoSuchNodeTypeError(msg, node_type=supertype, subtype=name)

        candidate = self.hierarchy.copy()
        for name, definition in batch.items():
            candidate.add_node(name)
            for supertype in _effective_supertypes(definition):
                candidate.add_edge(name, supertype)
        if not nx.is_directed_acyclic_graph(candidate):
            cycle = [edge[0] for edge in nx.find_cycle(candidate)]
            msg = f"Inheritance cycle between node types: {' > '.join(cycle)}"
            raise NodeTypeConflictError(msg, cycle=cycle)

        now = utc_timestamp()
        for name, definition in batch.items():
            values = {
                "supertypes": json.dumps(sorted(_effective_supertypes(definition))),
                "is_mixin": int(definition.is_mixin),
                "is_abstract": int(definition.is_abstract),
                "definition": definition.source,
            }
            if statuses[name] == "registered":
                self._conn.execute(insert(node_types).values(name=name, registered=now, **values))
            elif statuses[name] == "updated":
                self._conn.execute(
                    update(node_types).where(node_types.c.name == name).values(**values)
                )

        if any(status != "unchanged" for status in statuses.values()):
            self._hierarchy = None
            self._on_write()
        return statuses

    def bootstrap(self) -> bool:
        """Register the built-in namespaces and node types if missing.

        Returns True if anything was registered.
        """
        if self.has_node_type(BASE_NODE_TYPE):
            return False
        document = parse_cnd(BUILTIN_CND)
        for ns in document.namespaces:
            self.register_namespace(ns.prefix, ns.uri)
        self.register_node_types(document.node_types)
        return True

