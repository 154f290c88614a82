"""SQLite database engine and schema via SQLAlchemy Core."""

from repoinit.infrastructure.database.engine import (
    create_db_engine,
    init_database,
    utc_timestamp,
)
from repoinit.infrastructure.database.schema import (
    acl_entries,
    metadata,
    namespaces,
    node_mixins,
    node_types,
    nodes,
    principals,
)

__all__ = [
    "acl_entries",
    "create_db_engine",
    "init_database",
    "metadata",
    "namespaces",
    "node_mixins",
    "node_types",
    "nodes",
    "principals",
    "utc_timestamp",
]
