"""Database engine setup for SQLite with WAL mode.

SQLite is the persistence layer: WAL mode so readers never see a
session's pending writes, and ACID transactions so a batch is either
committed as a whole by its caller or not at all. The DB is stored at
{repository_root}/.repoinit/repository.db.

SQLAlchemy Core (not ORM) is used because the repository is driven
through explicit, short-lived sessions that hold one connection each.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, insert, select
from sqlalchemy.engine import Engine

from repoinit.infrastructure.database.schema import metadata, nodes

ROOT_NODE_TYPE = "rep:root"


def utc_timestamp() -> str:
    """Current UTC time as ISO 8601 (for ``created``/``registered`` columns)."""
    return datetime.now(UTC).isoformat()


def create_db_engine(db_path: Path, *, lock_timeout: float = 5.0) -> Engine:
    """Create a SQLite engine with WAL mode and foreign keys enabled."""
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"timeout": lock_timeout},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_database(repository_root: Path, *, lock_timeout: float = 5.0) -> Engine:
    """Initialize the database at ``{repository_root}/.repoinit/repository.db``.

    Creates the ``.repoinit/`` directory, all tables from
    :data:`schema.metadata`, and the root node.

    Idempotent — safe to call on an existing repository.

    Returns the engine ready for use.
    """
    state_dir = repository_root / ".repoinit"
    state_dir.mkdir(parents=True, exist_ok=True)

    engine = create_db_engine(state_dir / "repository.db", lock_timeout=lock_timeout)
    metadata.create_all(engine)
    _seed_root(engine)
    return engine


def _seed_root(engine: Engine) -> None:
    """Insert the root node if it doesn't exist."""
    with engine.begin() as conn:
        row = conn.execute(select(nodes.c.path).where(nodes.c.path == "/")).first()
        if row is None:
            conn.execute(
                insert(nodes).values(
                    path="/",
                    parent=None,
                    name="",
                    primary_type=ROOT_NODE_TYPE,
                    created=utc_timestamp(),
                )
            )
