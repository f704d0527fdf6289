"""SQLAlchemy Core table definitions.

Durable storage is a single key/value table: one row per named record,
holding the JSON snapshot of a design.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, Table, Text

metadata = MetaData()

snapshots = Table(
    "snapshots",
    metadata,
    Column("name", Text, primary_key=True),
    Column("payload", Text, nullable=False),  # JSON object
    Column("schema_version", Integer),  # copied from payload for inspection
    Column("updated", Text, nullable=False),
)
