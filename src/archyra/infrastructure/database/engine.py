"""Database engine setup for SQLite with WAL mode.

The DB is stored at ``{root}/.archyra/{db_filename}``. SQLAlchemy Core
(not ORM) is used: the only access pattern is read/replace of one row.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from archyra.infrastructure.database.schema import metadata

STATE_DIRNAME = ".archyra"
DEFAULT_DB_FILENAME = "archyra.db"


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine with WAL mode enabled."""
    engine = create_engine(f"sqlite:///{db_path}", echo=False)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def init_database(root: Path, db_filename: str = DEFAULT_DB_FILENAME) -> Engine:
    """Create ``{root}/.archyra/`` and the snapshot table if missing.

    Idempotent — safe to call on an existing workspace.
    """
    state_dir = root / STATE_DIRNAME
    state_dir.mkdir(parents=True, exist_ok=True)

    engine = create_db_engine(state_dir / db_filename)
    metadata.create_all(engine)
    return engine
