"""DesignEngine — owns one DesignDocument and every mutation on it.

All operations are synchronous and total: an unknown id or otherwise
unusable input is a logged no-op, reported by a ``False`` return value,
never an exception. UI events may race with state that has already
changed, so idempotence wins over strictness.

Every applied mutation notifies subscribers with the current document.
Persistence subscribes here; a failing subscriber is logged and never
affects the mutation that triggered it.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, TypeAlias

from pydantic import ValidationError

from archyra.domain import hierarchy
from archyra.domain.changes import (
    EDGE_CHANGES,
    NODE_CHANGES,
    EdgeChange,
    EdgeRemoveChange,
    EdgeSelectChange,
    NodeChange,
    NodeDimensionsChange,
    NodePositionChange,
    NodeRemoveChange,
    NodeSelectChange,
)
from archyra.domain.document import (
    DEFAULT_DESIGN_NAME,
    PARENT_EXTENT,
    DesignDocument,
    Edge,
    Node,
    NodeData,
    default_edge_style,
)
from archyra.domain.hierarchy import VpcHierarchy
from archyra.domain.ids import unique_edge_id
from archyra.domain.layout import DEFAULT_LAYOUT, ContainerLayout, apply_container_layout
from archyra.domain.placement import PlacementPolicy
from archyra.domain.types import ActiveTab, EdgeKind, LanguagePreference
from archyra.services.migration import RepairReport, heal_graph

logger = logging.getLogger(__name__)

ChangeListener: TypeAlias = Callable[[DesignDocument], None]

_SCALARS = (str, int, float, bool)

# Accept both python and camelCase names for descriptive fields.
_DATA_FIELDS: dict[str, str] = {}
for _name, _info in NodeData.model_fields.items():
    _DATA_FIELDS[_name] = _name
    if _info.alias:
        _DATA_FIELDS[_info.alias] = _name


class DesignEngine:
    """Mutation API over a single in-memory design document.

    Args:
        document: Initial state; an empty design when omitted.
        layout: Default container dimensions for new and loaded nodes.
        strict_hierarchy: Reject :meth:`set_parent` calls that would
            close a parent cycle. When False, cycles are accepted and
            healed on the next load.
        placement: Optional kind-compatibility policy checked by
            :meth:`add_node`, :meth:`set_parent` and :meth:`connect`.
    """

    def __init__(
        self,
        document: DesignDocument | None = None,
        *,
        layout: ContainerLayout = DEFAULT_LAYOUT,
        strict_hierarchy: bool = False,
        placement: PlacementPolicy | None = None,
        default_name: str = DEFAULT_DESIGN_NAME,
        default_language: LanguagePreference = LanguagePreference.TYPESCRIPT,
    ) -> None:
        self._layout = layout
        self._strict_hierarchy = strict_hierarchy
        self._placement = placement
        self._default_name = default_name
        self._default_language = default_language
        self._doc = document if document is not None else self._empty_document()
        self._listeners: list[ChangeListener] = []

    @property
    def document(self) -> DesignDocument:
        return self._doc

    @property
    def strict_hierarchy(self) -> bool:
        return self._strict_hierarchy

    # --- Change notification ---

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, op: str, *, dirty: bool = True) -> None:
        if dirty:
            self._doc.dirty = True
        for listener in list(self._listeners):
            try:
                listener(self._doc)
            except Exception:
                logger.warning("Change listener failed after %s", op, exc_info=True)

    def _empty_document(self) -> DesignDocument:
        return DesignDocument(name=self._default_name, language_preference=self._default_language)

    # --- Nodes ---

    def add_node(self, node: Node) -> bool:
        """Append *node* to the document.

        The caller generates ids; a duplicate id is ignored. A parent
        that does not exist is dropped so no dangling link is stored.
        """
        if self._doc.has_node(node.id):
            logger.warning("add_node ignored: duplicate id %s", node.id)
            return False

        node = node.model_copy(deep=True)
        if node.parent_id is not None:
            if not self._doc.has_node(node.parent_id) or node.parent_id == node.id:
                logger.warning(
                    "add_node %s: parent %s not found, adding at top level",
                    node.id,
                    node.parent_id,
                )
                node.detach()
            elif node.extent is None:
                node.extent = PARENT_EXTENT
        apply_container_layout(node, self._layout)

        self._doc.nodes[node.id] = node
        if self._placement is not None:
            violation = self._placement.check_parent(self._doc, node.id, node.parent_id)
            if violation is not None:
                del self._doc.nodes[node.id]
                logger.warning("add_node %s rejected: %s", node.id, violation.message)
                return False

        self._commit("add_node")
        return True

    def remove_node(self, node_id: str) -> bool:
        """Remove one node and every edge touching it.

        Shallow: children are not removed, they are detached and become
        top-level nodes.
        """
        if not self._remove_nodes({node_id}, detach_orphans=True):
            return False
        self._commit("remove_node")
        return True

    def remove_node_with_children(self, node_id: str) -> bool:
        """Remove a node, all of its transitive descendants, and their edges."""
        if not self._doc.has_node(node_id):
            return False
        doomed = {node_id} | hierarchy.descendants(self._doc, node_id)
        self._remove_nodes(doomed, detach_orphans=False)
        logger.debug("Removed %s with %d descendant(s)", node_id, len(doomed) - 1)
        self._commit("remove_node_with_children")
        return True

    def _remove_nodes(self, node_ids: set[str], *, detach_orphans: bool) -> bool:
        doc = self._doc
        if not any(doc.has_node(nid) for nid in node_ids):
            return False
        doc.nodes = {nid: n for nid, n in doc.nodes.items() if nid not in node_ids}
        doc.edges = [e for e in doc.edges if not e.touches(node_ids)]
        if detach_orphans:
            for node in doc.iter_nodes():
                if node.parent_id in node_ids:
                    node.detach()
        if doc.selected_node_id in node_ids:
            doc.selected_node_id = None
        return True

    def update_node_data(self, node_id: str, data: Mapping[str, Any]) -> bool:
        """Shallow-merge descriptive fields into a node's data.

        Keys may use python or camelCase names. Unknown keys are ignored.
        """
        node = self._doc.get_node(node_id)
        if node is None:
            return False
        updates: dict[str, Any] = {}
        for key, value in data.items():
            field_name = _DATA_FIELDS.get(key)
            if field_name is None:
                logger.debug("update_node_data %s: ignoring unknown field %r", node_id, key)
                continue
            updates[field_name] = value
        if not updates:
            return False
        try:
            node.data = NodeData.model_validate({**node.data.model_dump(), **updates})
        except ValidationError as exc:
            logger.warning("update_node_data %s rejected: %s", node_id, exc)
            return False
        self._commit("update_node_data")
        return True

    def update_node_property(self, node_id: str, key: str, value: Any) -> bool:
        """Set one entry of a node's ``properties`` mapping."""
        node = self._doc.get_node(node_id)
        if node is None:
            return False
        if not isinstance(value, _SCALARS):
            logger.warning(
                "update_node_property %s.%s: unsupported value type %s",
                node_id,
                key,
                type(value).__name__,
            )
            return False
        if isinstance(value, float) and not math.isfinite(value):
            logger.warning("update_node_property %s.%s: non-finite value %r", node_id, key, value)
            return False
        node.data.properties[key] = value
        self._commit("update_node_property")
        return True

    # --- Edges ---

    def connect(
        self,
        source_id: str,
        target_id: str,
        *,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> Edge | None:
        """Create a deletable, animated edge. The only way edges are created.

        Returns the new edge, or None when an endpoint is missing or the
        same connection already exists.
        """
        if not (self._doc.has_node(source_id) and self._doc.has_node(target_id)):
            return None
        edge = Edge(
            source_id=source_id,
            target_id=target_id,
            source_handle=source_handle,
            target_handle=target_handle,
            kind=EdgeKind.DELETABLE.value,
            animated=True,
            style=default_edge_style(),
        )
        if any(existing.same_connection(edge) for existing in self._doc.edges):
            return None
        edge.id = unique_edge_id(edge.id, {e.id for e in self._doc.edges})
        if self._placement is not None:
            violation = self._placement.check_connection(self._doc, source_id, target_id)
            if violation is not None:
                logger.warning(
                    "connect %s -> %s rejected: %s", source_id, target_id, violation.message
                )
                return None
        self._doc.edges.append(edge)
        self._commit("connect")
        return edge

    # --- Canvas deltas ---

    def apply_node_changes(self, changes: Iterable[NodeChange | Mapping[str, Any]]) -> int:
        """Apply drag/resize/select/remove deltas. Returns how many applied."""
        applied = 0
        for change in _parse(NODE_CHANGES, changes):
            node = self._doc.get_node(change.id)
            if node is None:
                continue
            if isinstance(change, NodePositionChange):
                if change.position is None:
                    continue
                node.position = change.position
            elif isinstance(change, NodeDimensionsChange):
                if change.dimensions is None:
                    continue
                node.dimensions = change.dimensions
            elif isinstance(change, NodeSelectChange):
                node.selected = change.selected
            elif isinstance(change, NodeRemoveChange):
                self._remove_nodes({change.id}, detach_orphans=True)
            applied += 1
        if applied:
            self._commit("apply_node_changes")
        return applied

    def apply_edge_changes(self, changes: Iterable[EdgeChange | Mapping[str, Any]]) -> int:
        """Apply select/remove deltas to edges. Returns how many applied."""
        applied = 0
        for change in _parse(EDGE_CHANGES, changes):
            index = next((i for i, e in enumerate(self._doc.edges) if e.id == change.id), None)
            if index is None:
                continue
            if isinstance(change, EdgeSelectChange):
                self._doc.edges[index].selected = change.selected
            elif isinstance(change, EdgeRemoveChange):
                del self._doc.edges[index]
            applied += 1
        if applied:
            self._commit("apply_edge_changes")
        return applied

    # --- Hierarchy ---

    def set_parent(self, node_id: str, parent_id: str | None) -> bool:
        """Nest *node_id* inside *parent_id*, or detach it when None.

        With ``strict_hierarchy`` a link that would close a cycle is
        refused. Otherwise it is stored as-is and healed on next load.
        """
        node = self._doc.get_node(node_id)
        if node is None:
            return False
        if parent_id is None:
            node.detach()
            self._commit("set_parent")
            return True
        if not self._doc.has_node(parent_id):
            logger.warning("set_parent %s: parent %s not found", node_id, parent_id)
            return False
        if self._strict_hierarchy and hierarchy.would_create_cycle(self._doc, node_id, parent_id):
            logger.warning("set_parent %s -> %s rejected: would create a cycle", node_id, parent_id)
            return False
        if self._placement is not None:
            violation = self._placement.check_parent(self._doc, node_id, parent_id)
            if violation is not None:
                logger.warning("set_parent %s rejected: %s", node_id, violation.message)
                return False
        node.parent_id = parent_id
        node.extent = PARENT_EXTENT
        if hierarchy.has_cycle(self._doc, node_id):
            logger.warning(
                "set_parent %s -> %s closes a parent cycle; it is repaired on next load",
                node_id,
                parent_id,
            )
        self._commit("set_parent")
        return True

    def get_children(self, parent_id: str) -> list[Node]:
        return hierarchy.get_children(self._doc, parent_id)

    def get_vpc_hierarchy(self) -> list[VpcHierarchy]:
        return hierarchy.vpc_hierarchy(self._doc)

    def container_at(self, x: float, y: float) -> Node | None:
        return hierarchy.container_at(self._doc, x, y, self._layout)

    # --- Selection and panel ---

    def select_node(self, node_id: str | None) -> bool:
        """Make *node_id* the single selection; None clears it.

        The side panel opens with a selection and closes without one.
        """
        if node_id is not None and not self._doc.has_node(node_id):
            return False
        self._doc.selected_node_id = node_id
        self._doc.panel_open = node_id is not None
        self._commit("select_node", dirty=False)
        return True

    def set_panel_open(self, is_open: bool) -> None:
        self._doc.panel_open = is_open
        self._commit("set_panel_open", dirty=False)

    def set_active_tab(self, tab: ActiveTab | str) -> bool:
        try:
            self._doc.active_tab = ActiveTab(tab)
        except ValueError:
            return False
        self._commit("set_active_tab", dirty=False)
        return True

    def set_language_preference(self, language: LanguagePreference | str) -> bool:
        try:
            self._doc.language_preference = LanguagePreference(language)
        except ValueError:
            return False
        self._commit("set_language_preference", dirty=False)
        return True

    # --- Document lifecycle ---

    def set_design_name(self, name: str) -> None:
        self._doc.name = name
        self._commit("set_design_name")

    def clear_canvas(self) -> None:
        """Reset to an empty design."""
        self._doc = self._empty_document()
        self._commit("clear_canvas", dirty=False)

    def load_design(
        self,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        name: str,
        design_id: str | None = None,
    ) -> RepairReport:
        """Replace the whole document.

        Every edge is rewritten to ``deletable``. Dangling edges and
        dangling or cyclic parent links are repaired the same way as on
        load from storage; the returned report lists what changed.
        """
        arena, healed_edges, report = heal_graph(
            (n.model_copy(deep=True) for n in nodes),
            (e.model_copy(deep=True) for e in edges),
            layout=self._layout,
        )
        doc = self._doc
        doc.nodes = arena
        doc.edges = healed_edges
        doc.name = name
        doc.design_id = design_id or None
        doc.dirty = False
        doc.selected_node_id = None
        self._commit("load_design", dirty=False)
        return report

    def mark_saved(self, design_id: str) -> None:
        """Record a successful save: clears the dirty flag."""
        self._doc.design_id = design_id
        self._doc.last_saved = datetime.now(UTC)
        self._doc.dirty = False
        self._commit("mark_saved", dirty=False)


def _parse(adapter: Any, changes: Iterable[Any]) -> list[Any]:
    """Validate raw change dicts; already-typed changes pass through."""
    raw = list(changes)
    try:
        return adapter.validate_python(raw)
    except ValidationError as exc:
        logger.warning("Ignoring malformed change batch: %s", exc)
        return []
