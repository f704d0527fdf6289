"""DesignPersistence — keeps one named snapshot record in sync with an engine.

Loading runs the snapshot through :func:`migrate_snapshot`. Saving is a
side effect of mutation: :meth:`DesignPersistence.attach` subscribes to
the engine so every applied change rewrites the record. A failed write
is logged by the engine and never undoes the in-memory change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from archyra.domain.document import DEFAULT_DESIGN_NAME, Dimensions
from archyra.domain.layout import ContainerLayout
from archyra.domain.placement import DEFAULT_POLICY
from archyra.domain.types import LanguagePreference
from archyra.services.engine import DesignEngine
from archyra.services.migration import SCHEMA_VERSION, MigrationResult, migrate_snapshot

if TYPE_CHECKING:
    from archyra.config.models import LayoutConfig
    from archyra.config.settings import ArchyraSettings
    from archyra.domain.document import DesignDocument
    from archyra.infrastructure.store import SnapshotStore

logger = logging.getLogger(__name__)


def layout_from_config(config: LayoutConfig) -> ContainerLayout:
    """Build the container layout from the ``[layout]`` section."""
    return ContainerLayout(
        vpc=Dimensions(width=config.vpc_width, height=config.vpc_height),
        vpc_z_index=config.vpc_z_index,
        subnet=Dimensions(width=config.subnet_width, height=config.subnet_height),
        subnet_z_index=config.subnet_z_index,
    )


class DesignPersistence:
    """Load and save the design stored under *record_name*."""

    def __init__(
        self,
        store: SnapshotStore,
        record_name: str,
        *,
        layout: ContainerLayout | None = None,
        default_name: str = DEFAULT_DESIGN_NAME,
        default_language: LanguagePreference = LanguagePreference.TYPESCRIPT,
    ) -> None:
        self._store = store
        self._record_name = record_name
        self._layout = layout or ContainerLayout()
        self._default_name = default_name
        self._default_language = default_language

    @property
    def record_name(self) -> str:
        return self._record_name

    def load(self) -> MigrationResult:
        """Read and repair the stored snapshot. Never raises for bad data."""
        raw = self._store.read(self._record_name)
        result = migrate_snapshot(
            raw,
            layout=self._layout,
            default_name=self._default_name,
            default_language=self._default_language,
        )
        logger.debug(
            "Loaded %r: %d node(s), %d edge(s)",
            self._record_name,
            len(result.document.nodes),
            len(result.document.edges),
        )
        return result

    def save(self, document: DesignDocument) -> None:
        self._store.write(self._record_name, document.to_snapshot(SCHEMA_VERSION))

    def attach(self, engine: DesignEngine) -> Callable[[], None]:
        """Persist after every mutation of *engine*. Returns the unsubscribe callable."""
        return engine.subscribe(self.save)

    @classmethod
    def from_settings(cls, store: SnapshotStore, settings: ArchyraSettings) -> DesignPersistence:
        return cls(
            store,
            settings.storage.record_name,
            layout=layout_from_config(settings.layout),
            default_name=settings.designer.default_name,
            default_language=_language(settings.designer.default_language),
        )

    def open_engine(self, settings: ArchyraSettings) -> tuple[DesignEngine, MigrationResult]:
        """Load the stored design into a new engine wired for persistence."""
        result = self.load()
        designer = settings.designer
        engine = DesignEngine(
            result.document,
            layout=self._layout,
            strict_hierarchy=designer.strict_hierarchy,
            placement=DEFAULT_POLICY if designer.enforce_placement else None,
            default_name=designer.default_name,
            default_language=_language(designer.default_language),
        )
        self.attach(engine)
        return engine, result


def _language(value: str) -> LanguagePreference:
    try:
        return LanguagePreference(value)
    except ValueError:
        logger.warning("Unknown default_language %r, using typescript", value)
        return LanguagePreference.TYPESCRIPT
