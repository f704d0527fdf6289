"""DesignService — ServiceResult-returning operations over the stored design.

Each instance loads the stored snapshot once, through the migration
pass, and wires the engine so that every applied mutation is written
back. Repairs made while loading are carried as warnings on every
result from this instance.
"""

from __future__ import annotations

import json
import logging
import math
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from archyra.domain.document import Edge, Node, NodeData, Position
from archyra.domain.ids import generate_node_id, is_valid_node_id
from archyra.domain.types import NodeKind
from archyra.services.base import BaseService
from archyra.services.migration import SCHEMA_VERSION
from archyra.services.persistence import DesignPersistence
from archyra.services.result import (
    INVALID_INPUT,
    IO_ERROR,
    NOT_FOUND,
    REJECTED,
    ServiceResult,
)

if TYPE_CHECKING:
    from pathlib import Path

    from archyra.infrastructure.workspace import Workspace
    from archyra.services.engine import DesignEngine

logger = logging.getLogger(__name__)

_NODES: TypeAdapter[list[Node]] = TypeAdapter(list[Node])
_EDGES: TypeAdapter[list[Edge]] = TypeAdapter(list[Edge])


def parse_property_value(raw: str) -> str | int | float | bool:
    """Coerce a command-line value to the narrowest scalar type.

    Examples:
        >>> parse_property_value("true")
        True
        >>> parse_property_value("3")
        3
        >>> parse_property_value("t3.micro")
        't3.micro'
        >>> parse_property_value("nan")
        'nan'
    """
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        value = float(raw)
    except ValueError:
        return raw
    # NaN and infinities have no JSON representation.
    return value if math.isfinite(value) else raw


class DesignService(BaseService):
    """Mutations and queries on the workspace's design record."""

    def __init__(self, workspace: Workspace) -> None:
        super().__init__(workspace)
        settings = workspace.settings
        self._persistence = DesignPersistence.from_settings(workspace.store, settings)
        self._engine, loaded = self._persistence.open_engine(settings)
        self._load_warnings = loaded.report.messages()

    @property
    def engine(self) -> DesignEngine:
        return self._engine

    def _ok(self, op: str, data: dict[str, Any] | None = None) -> ServiceResult:
        return ServiceResult(ok=True, op=op, data=data or {}, warnings=list(self._load_warnings))

    def _missing(self, op: str, node_id: str) -> ServiceResult:
        return ServiceResult.failure(op, NOT_FOUND, f"No node with id '{node_id}'", id=node_id)

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    def show(self) -> ServiceResult:
        doc = self._engine.document
        data = doc.summary()
        data["nodes"] = [
            {
                "id": n.id,
                "kind": n.kind.value,
                "service_id": n.data.service_id,
                "name": n.data.service_name,
                "parent_id": n.parent_id,
            }
            for n in doc.iter_nodes()
        ]
        data["edges"] = [
            {"id": e.id, "source": e.source_id, "target": e.target_id} for e in doc.edges
        ]
        return self._ok("show", data)

    def rename(self, name: str) -> ServiceResult:
        if not name.strip():
            return ServiceResult.failure("rename", INVALID_INPUT, "Design name cannot be empty")
        self._engine.set_design_name(name)
        return self._ok("rename", {"name": name})

    def clear(self) -> ServiceResult:
        removed = len(self._engine.document.nodes)
        self._engine.clear_canvas()
        return self._ok("clear", {"removed_nodes": removed})

    def mark_saved(self, design_id: str) -> ServiceResult:
        self._engine.mark_saved(design_id)
        doc = self._engine.document
        last_saved = doc.last_saved.isoformat() if doc.last_saved else None
        return self._ok("mark_saved", {"design_id": design_id, "last_saved": last_saved})

    def hierarchy(self) -> ServiceResult:
        vpcs = [h.model_dump(mode="json", by_alias=True) for h in self._engine.get_vpc_hierarchy()]
        return self._ok("hierarchy", {"vpcs": vpcs, "count": len(vpcs)})

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(
        self,
        service_id: str,
        *,
        node_id: str | None = None,
        name: str | None = None,
        short_name: str = "",
        category: str = "",
        color: str = "",
        x: float = 0.0,
        y: float = 0.0,
        parent_id: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> ServiceResult:
        op = "add_node"
        node_id = node_id or generate_node_id()
        if not is_valid_node_id(node_id):
            return ServiceResult.failure(op, INVALID_INPUT, f"Invalid node id '{node_id}'")
        if self._engine.document.has_node(node_id):
            return ServiceResult.failure(op, REJECTED, f"Node '{node_id}' already exists")
        if parent_id is not None and not self._engine.document.has_node(parent_id):
            return self._missing(op, parent_id)
        try:
            node = Node(
                id=node_id,
                kind=NodeKind.from_service_id(service_id),
                position=Position(x=x, y=y),
                parent_id=parent_id,
                data=NodeData(
                    service_id=service_id,
                    service_name=name or service_id,
                    short_name=short_name,
                    category=category,
                    color=color,
                    properties=properties or {},
                ),
            )
        except ValidationError as exc:
            return ServiceResult.failure(op, INVALID_INPUT, str(exc))
        if not self._engine.add_node(node):
            return ServiceResult.failure(
                op, REJECTED, f"Node '{node_id}' cannot be placed there", id=node_id
            )
        return self._ok(op, {"id": node_id, "kind": node.kind.value, "parent_id": parent_id})

    def remove_node(self, node_id: str, *, cascade: bool = False) -> ServiceResult:
        op = "remove_node"
        doc = self._engine.document
        if not doc.has_node(node_id):
            return self._missing(op, node_id)
        before_nodes, before_edges = set(doc.nodes), len(doc.edges)
        if cascade:
            self._engine.remove_node_with_children(node_id)
        else:
            self._engine.remove_node(node_id)
        doc = self._engine.document
        return self._ok(
            op,
            {
                "id": node_id,
                "cascade": cascade,
                "removed": sorted(before_nodes - set(doc.nodes)),
                "removed_edges": before_edges - len(doc.edges),
            },
        )

    def set_parent(self, node_id: str, parent_id: str | None) -> ServiceResult:
        op = "set_parent"
        doc = self._engine.document
        if not doc.has_node(node_id):
            return self._missing(op, node_id)
        if parent_id is not None and not doc.has_node(parent_id):
            return self._missing(op, parent_id)
        if not self._engine.set_parent(node_id, parent_id):
            return ServiceResult.failure(
                op,
                REJECTED,
                f"Cannot nest '{node_id}' inside '{parent_id}'",
                id=node_id,
                parent_id=parent_id,
            )
        return self._ok(op, {"id": node_id, "parent_id": parent_id})

    def set_property(self, node_id: str, key: str, raw_value: str) -> ServiceResult:
        op = "set_property"
        if not self._engine.document.has_node(node_id):
            return self._missing(op, node_id)
        value = parse_property_value(raw_value)
        self._engine.update_node_property(node_id, key, value)
        return self._ok(op, {"id": node_id, "key": key, "value": value})

    def update_node(self, node_id: str, fields: dict[str, Any]) -> ServiceResult:
        op = "update_node"
        if not self._engine.document.has_node(node_id):
            return self._missing(op, node_id)
        if not self._engine.update_node_data(node_id, fields):
            return ServiceResult.failure(
                op, INVALID_INPUT, "No valid fields to update", fields=sorted(fields)
            )
        node = self._engine.document.nodes[node_id]
        return self._ok(op, {"id": node_id, "data": node.data.model_dump(mode="json", by_alias=True)})

    def select(self, node_id: str | None) -> ServiceResult:
        if not self._engine.select_node(node_id):
            return self._missing("select", node_id or "")
        doc = self._engine.document
        return self._ok(
            "select", {"selected_node_id": doc.selected_node_id, "panel_open": doc.panel_open}
        )

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def connect(
        self,
        source_id: str,
        target_id: str,
        *,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> ServiceResult:
        op = "connect"
        for node_id in (source_id, target_id):
            if not self._engine.document.has_node(node_id):
                return self._missing(op, node_id)
        edge = self._engine.connect(
            source_id, target_id, source_handle=source_handle, target_handle=target_handle
        )
        if edge is None:
            return ServiceResult.failure(
                op,
                REJECTED,
                f"Cannot connect '{source_id}' to '{target_id}'",
                source=source_id,
                target=target_id,
            )
        return self._ok(op, {"id": edge.id, "source": source_id, "target": target_id})

    def disconnect(self, edge_id: str) -> ServiceResult:
        if not self._engine.apply_edge_changes([{"type": "remove", "id": edge_id}]):
            return ServiceResult.failure(
                "disconnect", NOT_FOUND, f"No edge with id '{edge_id}'", id=edge_id
            )
        return self._ok("disconnect", {"id": edge_id})

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_design(self, path: Path) -> ServiceResult:
        """Write the current design as a snapshot JSON file."""
        snapshot = self._engine.document.to_snapshot(SCHEMA_VERSION)
        try:
            path.write_text(json.dumps(snapshot, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            return ServiceResult.failure("export", IO_ERROR, str(exc), path=str(path))
        return self._ok(
            "export",
            {"path": str(path), "nodes": len(snapshot["nodes"]), "edges": len(snapshot["edges"])},
        )

    def import_design(self, path: Path) -> ServiceResult:
        """Replace the current design with the contents of a snapshot file.

        Unlike loading from storage, a file with malformed nodes or edges
        is refused as a whole. Dangling references are repaired and
        reported as warnings.
        """
        op = "import"
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            return ServiceResult.failure(op, IO_ERROR, str(exc), path=str(path))
        except json.JSONDecodeError as exc:
            return ServiceResult.failure(op, INVALID_INPUT, f"Not valid JSON: {exc}", path=str(path))
        if not isinstance(raw, dict):
            return ServiceResult.failure(op, INVALID_INPUT, "Expected a JSON object", path=str(path))
        try:
            nodes = _NODES.validate_python(raw.get("nodes") or [])
            edges = _EDGES.validate_python(raw.get("edges") or [])
        except ValidationError as exc:
            return ServiceResult.failure(
                op, INVALID_INPUT, f"Invalid design file: {exc.error_count()} error(s)"
            )
        name = raw.get("designName") or raw.get("name") or self._engine.document.name
        design_id = raw.get("designId")
        if not isinstance(design_id, str):
            design_id = None
        report = self._engine.load_design(nodes, edges, str(name), design_id)
        logger.debug("Imported %s (%d repair(s))", path, len(report.messages()))
        doc = self._engine.document
        return ServiceResult(
            ok=True,
            op=op,
            data={"path": str(path), "name": doc.name, "nodes": len(doc.nodes), "edges": len(doc.edges)},
            warnings=[*self._load_warnings, *report.messages()],
        )
