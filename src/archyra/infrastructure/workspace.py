"""Workspace — the single dependency injected into every service.

Owns the database engine and the snapshot store for one workspace root.
The engine is created (and the schema ensured) on construction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from archyra.infrastructure.database.engine import init_database
from archyra.infrastructure.store import SnapshotStore

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.engine import Engine

    from archyra.config.settings import ArchyraSettings

logger = logging.getLogger(__name__)


class Workspace:
    """Storage handle for ``{root}/.archyra/``."""

    def __init__(self, settings: ArchyraSettings) -> None:
        self._settings = settings
        self._root = settings.workspace_root
        self._engine = init_database(self._root, settings.storage.db_filename)
        self._store = SnapshotStore(self._engine)
        logger.debug("Opened workspace at %s", self._root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def settings(self) -> ArchyraSettings:
        return self._settings

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def store(self) -> SnapshotStore:
        return self._store

    def close(self) -> None:
        """Dispose of pooled connections."""
        self._engine.dispose()
