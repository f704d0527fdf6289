"""SnapshotStore — named JSON records in the ``snapshots`` table.

Writes replace the whole record. Two processes writing the same name
simply overwrite each other; there is no conflict detection.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert

from archyra.infrastructure.database.schema import snapshots

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Read and replace named snapshot records."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def read(self, name: str) -> Any | None:
        """Return the parsed payload for *name*, or None.

        A payload that is not valid JSON is logged and treated as absent.
        """
        with self._engine.connect() as conn:
            row = conn.execute(select(snapshots.c.payload).where(snapshots.c.name == name)).first()
        if row is None:
            return None
        try:
            return json.loads(row.payload)
        except json.JSONDecodeError:
            logger.warning("Snapshot %r is not valid JSON; ignoring it", name)
            return None

    def write(self, name: str, payload: dict[str, Any]) -> None:
        """Insert or replace the record *name*."""
        values = {
            "name": name,
            "payload": json.dumps(payload, separators=(",", ":")),
            "schema_version": payload.get("schemaVersion"),
            "updated": datetime.now(UTC).isoformat(),
        }
        stmt = insert(snapshots).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[snapshots.c.name],
            set_={k: stmt.excluded[k] for k in ("payload", "schema_version", "updated")},
        )
        with self._engine.begin() as conn:
            conn.execute(stmt)

