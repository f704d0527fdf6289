"""SQLite database engine and snapshot schema via SQLAlchemy Core."""

from archyra.infrastructure.database.engine import create_db_engine, init_database
from archyra.infrastructure.database.schema import metadata, snapshots

__all__ = [
    "create_db_engine",
    "init_database",
    "metadata",
    "snapshots",
]
