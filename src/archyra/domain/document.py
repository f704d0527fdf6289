"""Graph document model — nodes, edges and the design aggregate.

Nodes live in an arena keyed by id (insertion ordered). A node's
``parent_id`` is a weak reference: a relationship to another entry of
the arena, never ownership. All models serialize with camelCase aliases
so the persisted snapshot keeps the field names the canvas expects
(``parentId``, ``serviceId``, ``zIndex``, ...).

Older documents used the canvas library's raw node shape
(``parentNode``, ``data.nodeType``, top-level ``width``/``height``,
``style``) and ``source``/``target``/``type`` on edges. Both shapes are
accepted on input and converted.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from archyra.domain.ids import edge_id_for
from archyra.domain.types import (
    ActiveTab,
    EdgeKind,
    LanguagePreference,
    NodeKind,
    PropertyValue,
    RenderType,
)

DEFAULT_DESIGN_NAME = "Untitled Design"
PARENT_EXTENT = "parent"

EDGE_STROKE = "#6366f1"
EDGE_STROKE_WIDTH = 2


def default_edge_style() -> dict[str, Any]:
    """Fixed visual style applied to every new connection."""
    return {"stroke": EDGE_STROKE, "strokeWidth": EDGE_STROKE_WIDTH}


_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(BaseModel):
    """Canvas coordinate, relative to the parent container when nested."""

    x: float = 0.0
    y: float = 0.0


class Dimensions(BaseModel):
    model_config = {"frozen": True}

    width: float
    height: float


class NodeData(BaseModel):
    """Descriptive metadata. Opaque to the structural invariants."""

    model_config = _CAMEL

    service_id: str = Field(min_length=1)
    service_name: str = ""
    short_name: str = ""
    color: str = ""
    category: str = ""
    properties: dict[str, PropertyValue] = Field(default_factory=dict)


class Node(BaseModel):
    """A positioned entity in the diagram."""

    model_config = _CAMEL

    id: str = Field(min_length=1)
    kind: NodeKind = NodeKind.SERVICE
    position: Position = Field(default_factory=Position)
    parent_id: str | None = None
    extent: str | None = None
    data: NodeData
    dimensions: Dimensions | None = None
    z_index: int | None = None
    selected: bool = False

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, raw: Any) -> Any:
        """Accept the canvas library's raw node shape."""
        if not isinstance(raw, dict):
            return raw
        data = dict(raw)
        payload = data.get("data")
        payload = dict(payload) if isinstance(payload, dict) else None

        if "parentId" not in data and "parent_id" not in data:
            legacy_parent = data.pop("parentNode", None)
            if legacy_parent is None and payload is not None:
                legacy_parent = payload.get("parentId")
            if legacy_parent:
                data["parentId"] = legacy_parent
        data.pop("parentNode", None)

        if "kind" not in data and payload is not None:
            node_type = payload.get("nodeType")
            data["kind"] = node_type or NodeKind.from_service_id(payload.get("serviceId"))

        if "dimensions" not in data:
            style = data.get("style") if isinstance(data.get("style"), dict) else {}
            width = style.get("width") or data.get("width")
            height = style.get("height") or data.get("height")
            if width and height:
                data["dimensions"] = {"width": width, "height": height}
        for key in ("width", "height", "style", "type"):
            data.pop(key, None)

        if payload is not None:
            payload.pop("nodeType", None)
            payload.pop("parentId", None)
            data["data"] = payload
        return data

    @property
    def render_type(self) -> RenderType:
        return self.kind.render_type

    def detach(self) -> None:
        """Clear the parent link and the layout extent that goes with it."""
        self.parent_id = None
        self.extent = None


class Edge(BaseModel):
    """A directed connection between two node ids."""

    model_config = _CAMEL

    id: str = ""
    source_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)
    source_handle: str | None = None
    target_handle: str | None = None
    kind: str = EdgeKind.DELETABLE.value
    animated: bool = False
    style: dict[str, Any] = Field(default_factory=dict)
    selected: bool = False

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, raw: Any) -> Any:
        """Convert canvas ``source``/``target``/``type`` keys.

        A non-string ``type`` (such as null) becomes an empty kind, which the
        load pass rewrites to ``deletable``.
        """
        if not isinstance(raw, dict):
            return raw
        data = dict(raw)
        for legacy, field_name in (
            ("source", "sourceId"),
            ("target", "targetId"),
            ("type", "kind"),
        ):
            if legacy in data and field_name not in data:
                data[field_name] = data.pop(legacy)
        if "kind" in data and not isinstance(data["kind"], str):
            data["kind"] = ""
        return data

    @model_validator(mode="after")
    def _derive_id(self) -> Edge:
        if not self.id:
            self.id = edge_id_for(
                self.source_id, self.target_id, self.source_handle, self.target_handle
            )
        return self

    def touches(self, node_ids: Iterable[str] | str) -> bool:
        """True if either endpoint is in *node_ids*."""
        if isinstance(node_ids, str):
            return node_ids in (self.source_id, self.target_id)
        ids = node_ids if isinstance(node_ids, (set, frozenset)) else set(node_ids)
        return self.source_id in ids or self.target_id in ids

    def same_connection(self, other: Edge) -> bool:
        return (
            self.source_id == other.source_id
            and self.target_id == other.target_id
            and self.source_handle == other.source_handle
            and self.target_handle == other.target_handle
        )


class DesignDocument(BaseModel):
    """The aggregate: node arena, edges, and design metadata.

    ``selected_node_id``, ``panel_open`` and ``active_tab`` are the only
    UI concerns kept in the document; they are never persisted.
    """

    model_config = _CAMEL

    nodes: dict[str, Node] = Field(default_factory=dict)
    edges: list[Edge] = Field(default_factory=list)
    name: str = DEFAULT_DESIGN_NAME
    design_id: str | None = None
    dirty: bool = False
    last_saved: datetime | None = None
    selected_node_id: str | None = None
    panel_open: bool = True
    active_tab: ActiveTab = ActiveTab.PROPERTIES
    language_preference: LanguagePreference = LanguagePreference.TYPESCRIPT

    # --- Read-only accessors ---

    def get_node(self, node_id: str | None) -> Node | None:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def has_node(self, node_id: str | None) -> bool:
        return node_id is not None and node_id in self.nodes

    def node_ids(self) -> list[str]:
        return list(self.nodes)

    def iter_nodes(self) -> Iterator[Node]:
        """Nodes in insertion order."""
        return iter(self.nodes.values())

    def nodes_of_kind(self, kind: NodeKind) -> list[Node]:
        return [n for n in self.nodes.values() if n.kind is kind]

    def edges_touching(self, node_ids: Iterable[str] | str) -> list[Edge]:
        if not isinstance(node_ids, str):
            node_ids = set(node_ids)
        return [e for e in self.edges if e.touches(node_ids)]

    def to_snapshot(self, schema_version: int) -> dict[str, Any]:
        """The persisted subset: graph, name, id, language, schema version."""
        return {
            "nodes": [n.model_dump(mode="json", by_alias=True) for n in self.nodes.values()],
            "edges": [e.model_dump(mode="json", by_alias=True) for e in self.edges],
            "designName": self.name,
            "designId": self.design_id,
            "languagePreference": self.language_preference.value,
            "schemaVersion": schema_version,
        }

    def summary(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for node in self.nodes.values():
            counts[node.kind.value] = counts.get(node.kind.value, 0) + 1
        return {
            "name": self.name,
            "design_id": self.design_id,
            "dirty": self.dirty,
            "last_saved": self.last_saved.isoformat() if self.last_saved else None,
            "node_count": len(self.nodes),
            "edge_count": len(self.edges),
            "nodes_by_kind": counts,
            "selected_node_id": self.selected_node_id,
            "language_preference": self.language_preference.value,
        }
