"""SQLAlchemy Core table definitions for the repository database.

One table per repository concern: the node tree and its mixins, the
schema registry (namespaces and node types), the user directory, and
access control entries.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

nodes = Table(
    "nodes",
    metadata,
    Column("path", Text, primary_key=True),
    Column("parent", Text),  # NULL only for the root
    Column("name", Text, nullable=False),
    Column("primary_type", Text, nullable=False),
    Column("created", Text, nullable=False),
)

node_mixins = Table(
    "node_mixins",
    metadata,
    Column("path", Text, ForeignKey("nodes.path"), nullable=False),
    Column("mixin", Text, nullable=False),
    UniqueConstraint("path", "mixin"),
)

namespaces = Table(
    "namespaces",
    metadata,
    Column("prefix", Text, primary_key=True),
    Column("uri", Text, nullable=False, unique=True),
    Column("registered", Text, nullable=False),
)

node_types = Table(
    "node_types",
    metadata,
    Column("name", Text, primary_key=True),
    Column("supertypes", Text, nullable=False),  # JSON array (effective)
    Column("is_mixin", Integer, default=0, server_default="0"),
    Column("is_abstract", Integer, default=0, server_default="0"),
    Column("definition", Text, nullable=False),  # CND source of the clause
    Column("registered", Text, nullable=False),
)

principals = Table(
    "principals",
    metadata,
    Column("id", Text, primary_key=True),
    Column("kind", Text, nullable=False),  # user | service
    Column("path", Text, nullable=False, unique=True),
    Column("disabled", Integer, default=0, server_default="0"),
    Column("disabled_reason", Text),
    Column("password_hash", Text),
    Column("created", Text, nullable=False),
)

acl_entries = Table(
    "acl_entries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("path", Text, nullable=False),
    Column("principal_id", Text, nullable=False),
    Column("privilege", Text, nullable=False),
    Column("allow", Integer, nullable=False),
    Column("created", Text, nullable=False),
    UniqueConstraint("path", "principal_id", "privilege"),
)

# ---------------------------------------------------------------------------
# Indexes for frequently filtered columns
# ---------------------------------------------------------------------------

Index("ix_nodes_parent", nodes.c.parent)
Index("ix_node_mixins_path", node_mixins.c.path)
Index("ix_principals_kind", principals.c.kind)
Index("ix_acl_entries_principal", acl_entries.c.principal_id)
Index("ix_acl_entries_path", acl_entries.c.path)
