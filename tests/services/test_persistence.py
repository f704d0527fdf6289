"""Tests for DesignPersistence — snapshot round trips through SQLite."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import insert
from sqlalchemy.engine import Engine

from archyra.config.settings import ArchyraSettings
from archyra.domain import hierarchy
from archyra.domain.types import LanguagePreference
from archyra.infrastructure.database.schema import snapshots
from archyra.infrastructure.store import SnapshotStore
from archyra.services.engine import DesignEngine
from archyra.services.migration import SCHEMA_VERSION
from archyra.services.persistence import DesignPersistence, layout_from_config
from tests.conftest import make_node, raw_node, raw_snapshot

RECORD = "test-design"


def _persistence(db_engine: Engine) -> DesignPersistence:
    return DesignPersistence(SnapshotStore(db_engine), RECORD)


class TestLoad:
    def test_empty_store(self, db_engine: Engine) -> None:
        result = _persistence(db_engine).load()
        assert result.document.nodes == {}
        assert not result.report.changed

    def test_loads_stored_snapshot(self, db_engine: Engine) -> None:
        SnapshotStore(db_engine).write(RECORD, raw_snapshot([raw_node("a")]))
        result = _persistence(db_engine).load()
        assert result.document.node_ids() == ["a"]
        assert result.document.language_preference is LanguagePreference.PYTHON

    def test_corrupt_payload_is_no_snapshot(self, db_engine: Engine) -> None:
        with db_engine.begin() as conn:
            conn.execute(
                insert(snapshots).values(name=RECORD, payload="{not json", updated="2024-01-01")
            )
        result = _persistence(db_engine).load()
        assert result.document.nodes == {}


class TestSaveOnMutation:
    def test_every_mutation_is_written(self, db_engine: Engine) -> None:
        persistence = _persistence(db_engine)
        engine = DesignEngine()
        persistence.attach(engine)

        engine.add_node(make_node("a"))
        engine.set_design_name("Saved")

        stored = SnapshotStore(db_engine).read(RECORD)
        assert stored["designName"] == "Saved"
        assert [n["id"] for n in stored["nodes"]] == ["a"]
        assert stored["schemaVersion"] == SCHEMA_VERSION

    def test_ui_state_not_persisted(self, db_engine: Engine) -> None:
        persistence = _persistence(db_engine)
        engine = DesignEngine()
        persistence.attach(engine)
        engine.add_node(make_node("a"))
        engine.select_node("a")
        stored = SnapshotStore(db_engine).read(RECORD)
        assert "selectedNodeId" not in stored
        assert "dirty" not in stored

    def test_detach_stops_writes(self, db_engine: Engine) -> None:
        persistence = _persistence(db_engine)
        engine = DesignEngine()
        unsubscribe = persistence.attach(engine)
        unsubscribe()
        engine.add_node(make_node("a"))
        assert SnapshotStore(db_engine).read(RECORD) is None

    def test_round_trip(self, db_engine: Engine) -> None:
        persistence = _persistence(db_engine)
        engine = DesignEngine()
        persistence.attach(engine)
        engine.add_node(make_node("V", "vpc-environment"))
        engine.add_node(make_node("P", "public-subnet", parent_id="V"))
        engine.add_node(make_node("S", parent_id="P"))
        engine.connect("S", "V")

        reloaded = persistence.load()
        assert list(reloaded.document.iter_nodes()) == list(engine.document.iter_nodes())
        assert reloaded.document.edges == engine.document.edges
        assert not reloaded.report.changed


class TestCycleScenario:
    def test_lazy_cycle_is_healed_on_reload(self, db_engine: Engine) -> None:
        """A cycle made during editing is persisted, then broken on the next load."""
        persistence = _persistence(db_engine)
        engine = DesignEngine()
        persistence.attach(engine)
        engine.add_node(make_node("A"))
        engine.add_node(make_node("B", parent_id="A"))
        assert engine.set_parent("A", "B")

        doc = persistence.load().document
        assert doc.nodes["A"].parent_id is None
        assert doc.nodes["B"].parent_id == "A"
        assert not any(hierarchy.has_cycle(doc, n) for n in doc.node_ids())

    def test_strict_cycle_never_persisted(self, db_engine: Engine) -> None:
        persistence = _persistence(db_engine)
        engine = DesignEngine(strict_hierarchy=True)
        persistence.attach(engine)
        engine.add_node(make_node("A"))
        engine.add_node(make_node("B", parent_id="A"))
        assert engine.set_parent("A", "B") is False

        result = persistence.load()
        assert result.report.detached_parents == []
        assert result.document.nodes["B"].parent_id == "A"


class TestFromSettings:
    def test_settings_drive_engine(
        self, db_engine: Engine, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("ARCHYRA_CONFIG", raising=False)
        (tmp_path / "archyra.toml").write_text(
            '[storage]\nrecord_name = "custom"\n'
            '[designer]\nstrict_hierarchy = true\ndefault_name = "Blank"\n'
            "[layout]\nvpc_width = 900\n"
        )
        settings = ArchyraSettings.from_cli(workspace_root=tmp_path)
        persistence = DesignPersistence.from_settings(SnapshotStore(db_engine), settings)
        engine, result = persistence.open_engine(settings)

        assert persistence.record_name == "custom"
        assert engine.strict_hierarchy is True
        assert result.document.name == "Blank"
        engine.add_node(make_node("v", "vpc-environment"))
        assert engine.document.nodes["v"].dimensions.width == 900
        assert SnapshotStore(db_engine).read("custom") is not None

    def test_layout_from_config(self) -> None:
        from archyra.config.models import LayoutConfig

        layout = layout_from_config(LayoutConfig(subnet_height=99, subnet_z_index=-3))
        assert layout.subnet.height == 99
        assert layout.subnet_z_index == -3
        assert layout.vpc.width == 500
