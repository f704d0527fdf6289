"""Tests for DesignEngine — every mutation, its invariants and both cycle policies."""

from __future__ import annotations

import logging

import pytest

from archyra.domain import hierarchy
from archyra.domain.document import PARENT_EXTENT, DesignDocument, Dimensions, Position
from archyra.domain.layout import ContainerLayout
from archyra.domain.placement import DEFAULT_POLICY
from archyra.domain.types import ActiveTab, LanguagePreference, NodeKind
from archyra.services.engine import DesignEngine
from tests.conftest import make_edge, make_node, vpc_document


def _assert_no_dangling(doc: DesignDocument) -> None:
    for edge in doc.edges:
        assert doc.has_node(edge.source_id), edge.id
        assert doc.has_node(edge.target_id), edge.id
    for node in doc.iter_nodes():
        if node.parent_id is not None:
            assert doc.has_node(node.parent_id), node.id


@pytest.fixture
def vpc_engine() -> DesignEngine:
    doc = vpc_document()
    doc.edges = [make_edge("S", "L"), make_edge("L", "P")]
    return DesignEngine(doc)


class TestAddNode:
    def test_appends_and_marks_dirty(self, engine: DesignEngine) -> None:
        assert engine.add_node(make_node("a"))
        assert engine.document.node_ids() == ["a"]
        assert engine.document.dirty is True

    def test_duplicate_id_is_ignored(self, engine: DesignEngine) -> None:
        engine.add_node(make_node("a", "ec2"))
        assert engine.add_node(make_node("a", "s3")) is False
        assert engine.document.nodes["a"].data.service_id == "ec2"

    def test_caller_node_is_copied(self, engine: DesignEngine) -> None:
        node = make_node("a")
        engine.add_node(node)
        node.data.service_name = "changed"
        assert engine.document.nodes["a"].data.service_name == "ec2"

    def test_parent_sets_extent(self, engine: DesignEngine) -> None:
        engine.add_node(make_node("v", "vpc-environment"))
        engine.add_node(make_node("p", "public-subnet", parent_id="v"))
        assert engine.document.nodes["p"].extent == PARENT_EXTENT

    def test_missing_parent_is_cleared(self, engine: DesignEngine) -> None:
        assert engine.add_node(make_node("a", parent_id="ghost"))
        assert engine.document.nodes["a"].parent_id is None
        _assert_no_dangling(engine.document)

    def test_self_parent_is_cleared(self, engine: DesignEngine) -> None:
        engine.add_node(make_node("a", parent_id="a"))
        assert engine.document.nodes["a"].parent_id is None

    def test_container_layout_backfilled(self, engine: DesignEngine) -> None:
        engine.add_node(make_node("v", "vpc-environment"))
        node = engine.document.nodes["v"]
        assert node.dimensions == Dimensions(width=500, height=400)
        assert node.z_index == -2

    def test_custom_layout(self) -> None:
        layout = ContainerLayout(vpc=Dimensions(width=800, height=600))
        engine = DesignEngine(layout=layout)
        engine.add_node(make_node("v", "vpc-environment"))
        assert engine.document.nodes["v"].dimensions.width == 800


class TestRemoveNode:
    def test_removes_node_and_touching_edges(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.remove_node("L")
        doc = vpc_engine.document
        assert "L" not in doc.nodes
        assert doc.edges == []

    def test_is_shallow_and_detaches_children(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.remove_node("P")
        doc = vpc_engine.document
        assert doc.has_node("S")
        assert doc.nodes["S"].parent_id is None
        _assert_no_dangling(doc)

    def test_clears_selection(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.select_node("L")
        vpc_engine.remove_node("L")
        assert vpc_engine.document.selected_node_id is None

    def test_keeps_other_selection(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.select_node("S")
        vpc_engine.remove_node("L")
        assert vpc_engine.document.selected_node_id == "S"

    def test_unknown_id_is_noop(self, vpc_engine: DesignEngine) -> None:
        before = vpc_engine.document.model_copy(deep=True)
        assert vpc_engine.remove_node("ghost") is False
        assert vpc_engine.document == before


class TestRemoveNodeWithChildren:
    def test_removes_exactly_node_and_descendants(self, vpc_engine: DesignEngine) -> None:
        doc = vpc_engine.document
        expected = {"V"} | hierarchy.descendants(doc, "V")
        before = set(doc.nodes)

        assert vpc_engine.remove_node_with_children("V")

        doc = vpc_engine.document
        assert before - set(doc.nodes) == expected
        assert not any(e.touches(expected) for e in doc.edges)
        _assert_no_dangling(doc)

    def test_edges_into_removed_set_are_dropped(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.remove_node_with_children("P")
        assert vpc_engine.document.node_ids() == ["V", "L"]
        assert vpc_engine.document.edges == []

    def test_leaf(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.remove_node_with_children("S")
        assert vpc_engine.document.node_ids() == ["V", "P", "L"]

    def test_terminates_on_cycle(self, engine: DesignEngine) -> None:
        engine.add_node(make_node("A"))
        engine.add_node(make_node("B", parent_id="A"))
        engine.set_parent("A", "B")
        assert engine.remove_node_with_children("A")
        assert engine.document.nodes == {}

    def test_unknown_id_is_noop(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.remove_node_with_children("ghost") is False
        assert len(vpc_engine.document.nodes) == 4


class TestNodeData:
    def test_shallow_merge(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.update_node_data("S", {"serviceName": "Web", "category": "compute"})
        data = vpc_engine.document.nodes["S"].data
        assert (data.service_name, data.category, data.service_id) == ("Web", "compute", "ec2")

    def test_snake_case_keys(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.update_node_data("S", {"short_name": "web"})
        assert vpc_engine.document.nodes["S"].data.short_name == "web"

    def test_unknown_keys_ignored(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.update_node_data("S", {"bogus": 1}) is False
        assert vpc_engine.update_node_data("S", {"bogus": 1, "color": "#fff"}) is True

    def test_invalid_value_rejected(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.update_node_data("S", {"serviceId": ""}) is False
        assert vpc_engine.update_node_data("S", {"properties": {"ratio": float("nan")}}) is False
        assert vpc_engine.document.nodes["S"].data.service_id == "ec2"

    def test_unknown_node(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.update_node_data("ghost", {"color": "red"}) is False

    def test_update_property(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.update_node_property("S", "instanceType", "t3.micro")
        assert vpc_engine.update_node_property("S", "count", 2)
        assert vpc_engine.document.nodes["S"].data.properties == {
            "instanceType": "t3.micro",
            "count": 2,
        }

    def test_property_must_be_scalar(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.update_node_property("S", "tags", ["a"]) is False
        assert vpc_engine.document.nodes["S"].data.properties == {}

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_property_must_be_finite(self, vpc_engine: DesignEngine, value: float) -> None:
        assert vpc_engine.update_node_property("S", "ratio", value) is False
        assert vpc_engine.document.nodes["S"].data.properties == {}


class TestConnect:
    def test_edge_shape(self, vpc_engine: DesignEngine) -> None:
        edge = vpc_engine.connect("S", "V")
        assert edge is not None
        assert edge.kind == "deletable"
        assert edge.animated is True
        assert edge.style == {"stroke": "#6366f1", "strokeWidth": 2}
        assert vpc_engine.document.edges[-1] == edge

    def test_missing_endpoint_is_noop(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.connect("S", "ghost") is None
        assert len(vpc_engine.document.edges) == 2

    def test_identical_connection_is_noop(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.connect("S", "L") is None
        assert vpc_engine.connect("S", "L", source_handle="right") is not None

    def test_placement_policy_rejects_reverse_duplicate(self) -> None:
        doc = vpc_document()
        doc.edges = [make_edge("S", "L")]
        engine = DesignEngine(doc, placement=DEFAULT_POLICY)
        assert engine.connect("L", "S") is None
        assert engine.connect("S", "S") is None

    def test_colliding_derived_ids_stay_distinct(self, engine: DesignEngine) -> None:
        for node_id in ("a", "b-c", "a-b", "c"):
            engine.add_node(make_node(node_id))
        first = engine.connect("a", "b-c")
        second = engine.connect("a-b", "c")
        assert first is not None
        assert second is not None
        assert first.id != second.id

        assert engine.apply_edge_changes([{"type": "remove", "id": second.id}]) == 1
        (remaining,) = engine.document.edges
        assert (remaining.source_id, remaining.target_id) == ("a", "b-c")


class TestCanvasChanges:
    def test_position_and_dimensions(self, vpc_engine: DesignEngine) -> None:
        applied = vpc_engine.apply_node_changes(
            [
                {"type": "position", "id": "S", "position": {"x": 5, "y": 6}},
                {"type": "dimensions", "id": "P", "dimensions": {"width": 300, "height": 200}},
            ]
        )
        assert applied == 2
        assert vpc_engine.document.nodes["S"].position == Position(x=5, y=6)
        assert vpc_engine.document.nodes["P"].dimensions == Dimensions(width=300, height=200)

    def test_position_without_value_is_skipped(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.apply_node_changes([{"type": "position", "id": "S"}]) == 0

    def test_remove_goes_through_invariants(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.apply_node_changes([{"type": "remove", "id": "P"}])
        doc = vpc_engine.document
        assert "P" not in doc.nodes
        _assert_no_dangling(doc)

    def test_unknown_ids_skipped(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.apply_node_changes([{"type": "select", "id": "ghost", "selected": True}]) == 0
        assert vpc_engine.document.dirty is False

    def test_malformed_batch_ignored(self, vpc_engine: DesignEngine) -> None:
        changes = [
            {"type": "position", "id": "S", "position": {"x": 1, "y": 1}},
            {"type": "explode", "id": "S"},
        ]
        assert vpc_engine.apply_node_changes(changes) == 0
        assert vpc_engine.document.nodes["S"].position == Position(x=10, y=10)

    def test_edge_select_and_remove(self, vpc_engine: DesignEngine) -> None:
        first, second = (e.id for e in vpc_engine.document.edges)
        applied = vpc_engine.apply_edge_changes(
            [{"type": "select", "id": first, "selected": True}, {"type": "remove", "id": second}]
        )
        assert applied == 2
        assert [e.id for e in vpc_engine.document.edges] == [first]
        assert vpc_engine.document.edges[0].selected is True


class TestSetParent:
    def test_assign_and_detach(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.set_parent("L", "P")
        node = vpc_engine.document.nodes["L"]
        assert (node.parent_id, node.extent) == ("P", PARENT_EXTENT)
        assert vpc_engine.set_parent("L", None)
        assert (node.parent_id, node.extent) == (None, None)

    def test_unknown_node_or_parent_is_noop(self, vpc_engine: DesignEngine) -> None:
        assert vpc_engine.set_parent("ghost", "P") is False
        assert vpc_engine.set_parent("L", "ghost") is False
        assert vpc_engine.document.nodes["L"].parent_id is None

    def test_lazy_policy_accepts_cycle(self, engine: DesignEngine) -> None:
        """Default policy: a cycle is stored and only healed on the next load."""
        engine.add_node(make_node("A"))
        engine.add_node(make_node("B", parent_id="A"))
        assert engine.set_parent("A", "B") is True
        assert hierarchy.has_cycle(engine.document, "A")

    def test_lazy_cycle_is_logged(
        self, engine: DesignEngine, caplog: pytest.LogCaptureFixture
    ) -> None:
        engine.add_node(make_node("A"))
        engine.add_node(make_node("B", parent_id="A"))
        with caplog.at_level(logging.WARNING, logger="archyra"):
            engine.set_parent("A", "B")
        assert "closes a parent cycle" in caplog.text

    def test_acyclic_assignment_not_logged(
        self, vpc_engine: DesignEngine, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="archyra"):
            assert vpc_engine.set_parent("L", "P")
        assert "closes a parent cycle" not in caplog.text

    def test_strict_policy_rejects_cycle(self) -> None:
        engine = DesignEngine(strict_hierarchy=True)
        engine.add_node(make_node("A"))
        engine.add_node(make_node("B", parent_id="A"))
        assert engine.set_parent("A", "B") is False
        assert engine.set_parent("A", "A") is False
        assert engine.document.nodes["A"].parent_id is None
        assert not hierarchy.has_cycle(engine.document, "A")

    def test_placement_policy(self) -> None:
        engine = DesignEngine(vpc_document(), placement=DEFAULT_POLICY)
        assert engine.set_parent("L", "V") is False
        assert engine.set_parent("L", "P") is True

    def test_placement_policy_on_add(self) -> None:
        engine = DesignEngine(vpc_document(), placement=DEFAULT_POLICY)
        assert engine.add_node(make_node("x", parent_id="V")) is False
        assert not engine.document.has_node("x")
        assert engine.add_node(make_node("y", parent_id="P")) is True


class TestQueries:
    def test_vpc_scenario(self, engine: DesignEngine) -> None:
        engine.add_node(make_node("A", "vpc-environment"))
        engine.add_node(make_node("B", "public-subnet", parent_id="A"))
        engine.add_node(make_node("C", "ec2", parent_id="B"))

        (entry,) = engine.get_vpc_hierarchy()
        assert entry.vpc.id == "A"
        assert len(entry.public_subnets) == 1
        assert entry.public_subnets[0].subnet.id == "B"
        assert [n.id for n in entry.public_subnets[0].services] == ["C"]
        assert entry.private_subnets == []

    def test_get_children_and_container_at(self, vpc_engine: DesignEngine) -> None:
        assert [n.id for n in vpc_engine.get_children("P")] == ["S"]
        assert vpc_engine.container_at(30, 50).id == "P"


class TestSelection:
    def test_select_opens_panel_without_dirty(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.set_panel_open(False)
        assert vpc_engine.select_node("S")
        doc = vpc_engine.document
        assert (doc.selected_node_id, doc.panel_open, doc.dirty) == ("S", True, False)

    def test_clear_selection_closes_panel(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.select_node("S")
        vpc_engine.select_node(None)
        assert vpc_engine.document.selected_node_id is None
        assert vpc_engine.document.panel_open is False

    def test_unknown_id(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.select_node("S")
        assert vpc_engine.select_node("ghost") is False
        assert vpc_engine.document.selected_node_id == "S"

    def test_tab_and_language(self, engine: DesignEngine) -> None:
        assert engine.set_active_tab("terraform")
        assert engine.document.active_tab is ActiveTab.TERRAFORM
        assert engine.set_active_tab("bogus") is False
        assert engine.set_language_preference("python")
        assert engine.document.language_preference is LanguagePreference.PYTHON
        assert engine.set_language_preference("cobol") is False


class TestLifecycle:
    def test_set_design_name(self, engine: DesignEngine) -> None:
        engine.set_design_name("Payments")
        assert engine.document.name == "Payments"
        assert engine.document.dirty is True

    def test_clear_canvas(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.set_design_name("Payments")
        vpc_engine.clear_canvas()
        doc = vpc_engine.document
        assert doc.nodes == {}
        assert doc.edges == []
        assert doc.name == "Untitled Design"
        assert doc.dirty is False

    def test_mark_saved(self, vpc_engine: DesignEngine) -> None:
        vpc_engine.set_design_name("x")
        vpc_engine.mark_saved("d-42")
        doc = vpc_engine.document
        assert doc.design_id == "d-42"
        assert doc.last_saved is not None
        assert doc.dirty is False

    def test_load_design_normalizes_edges(self, vpc_engine: DesignEngine) -> None:
        nodes = [make_node("a"), make_node("b")]
        edges = [make_edge("a", "b", kind="smoothstep"), make_edge("b", "a", kind="default")]
        vpc_engine.select_node("S")

        report = vpc_engine.load_design(nodes, edges, "Loaded", "d-1")

        doc = vpc_engine.document
        assert {e.kind for e in doc.edges} == {"deletable"}
        assert len(report.normalized_edges) == 2
        assert (doc.name, doc.design_id, doc.dirty) == ("Loaded", "d-1", False)
        assert doc.selected_node_id is None
        assert edges[0].kind == "smoothstep"

    def test_load_design_repairs_references(self, engine: DesignEngine) -> None:
        nodes = [make_node("a", parent_id="ghost"), make_node("b", "vpc-environment")]
        report = engine.load_design(nodes, [make_edge("a", "ghost")], "Loaded")
        doc = engine.document
        assert doc.edges == []
        assert doc.nodes["a"].parent_id is None
        assert doc.nodes["b"].z_index == -2
        assert report.changed
        _assert_no_dangling(doc)

    def test_load_design_makes_edge_ids_unique(self, engine: DesignEngine) -> None:
        nodes = [make_node(n) for n in ("a", "b-c", "a-b", "c")]
        edges = [make_edge("a", "b-c"), make_edge("a-b", "c"), make_edge("a", "b-c", id="dup")]
        report = engine.load_design(nodes, edges, "Loaded")
        ids = [e.id for e in engine.document.edges]
        assert len(ids) == 2
        assert len(set(ids)) == 2
        assert report.renamed_edges == [{"id": ids[0], "new_id": ids[1]}]
        assert report.dropped_edges == [{"id": "dup", "reason": "duplicate connection"}]


class TestNoDanglingProperty:
    def test_operation_sequence(self, engine: DesignEngine) -> None:
        engine.add_node(make_node("V", "vpc-environment"))
        engine.add_node(make_node("P", "public-subnet", parent_id="V"))
        engine.add_node(make_node("S", parent_id="P"))
        engine.add_node(make_node("T", parent_id="P"))
        engine.connect("S", "T")
        engine.connect("T", "V")
        _assert_no_dangling(engine.document)
        engine.remove_node("P")
        _assert_no_dangling(engine.document)
        engine.apply_node_changes([{"type": "remove", "id": "T"}])
        _assert_no_dangling(engine.document)
        engine.remove_node_with_children("V")
        _assert_no_dangling(engine.document)
        assert engine.document.node_ids() == ["S"]


class TestListeners:
    def test_notified_after_mutation(self, engine: DesignEngine) -> None:
        seen: list[int] = []
        engine.subscribe(lambda doc: seen.append(len(doc.nodes)))
        engine.add_node(make_node("a"))
        engine.add_node(make_node("b"))
        assert seen == [1, 2]

    def test_not_notified_for_noop(self, engine: DesignEngine) -> None:
        seen: list[DesignDocument] = []
        engine.subscribe(seen.append)
        engine.remove_node("ghost")
        engine.select_node("ghost")
        assert seen == []

    def test_unsubscribe(self, engine: DesignEngine) -> None:
        seen: list[DesignDocument] = []
        unsubscribe = engine.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        engine.add_node(make_node("a"))
        assert seen == []

    def test_failing_listener_does_not_undo_mutation(
        self, engine: DesignEngine, caplog: pytest.LogCaptureFixture
    ) -> None:
        def boom(_doc: DesignDocument) -> None:
            raise RuntimeError("disk full")

        engine.subscribe(boom)
        with caplog.at_level(logging.WARNING, logger="archyra"):
            assert engine.add_node(make_node("a"))
        assert engine.document.has_node("a")
        assert "Change listener failed" in caplog.text


class TestInitialState:
    def test_defaults_from_constructor(self) -> None:
        engine = DesignEngine(default_name="Fresh", default_language=LanguagePreference.PYTHON)
        assert engine.document.name == "Fresh"
        assert engine.document.language_preference is LanguagePreference.PYTHON
        assert engine.strict_hierarchy is False
        engine.add_node(make_node("v", "vpc-environment"))
        assert engine.document.nodes_of_kind(NodeKind.VPC_ENVIRONMENT)
