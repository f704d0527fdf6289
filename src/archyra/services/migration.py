"""Load-time migration and repair of persisted design snapshots.

Pipeline, applied in order:

1. Version gate — a missing or older ``schemaVersion`` discards the
   graph, name and id wholesale. No step-wise migration is attempted.
2. Structural validation — nodes without a ``serviceId`` or that fail
   model validation are dropped, as are malformed edges.
3. Parent repair — dangling, self and cyclic ``parentId`` links are
   cleared (with their layout extent).
4. Layout backfill — containers get default dimensions and z-index.
5. Edge normalization — every edge becomes ``deletable``; edges whose
   endpoints were dropped are removed.

INVARIANT: this pass never raises. It always yields a usable document
and a :class:`RepairReport` describing what it dropped or changed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from archyra.domain.document import DEFAULT_DESIGN_NAME, DesignDocument, Edge, Node
from archyra.domain.hierarchy import in_cycle
from archyra.domain.ids import unique_edge_id
from archyra.domain.layout import DEFAULT_LAYOUT, ContainerLayout, apply_container_layout
from archyra.domain.types import EdgeKind, LanguagePreference

log = structlog.get_logger(__name__)

# Increment to discard stored designs after a breaking change.
SCHEMA_VERSION = 3

REASON_MISSING_PARENT = "missing_parent"
REASON_SELF_PARENT = "self_parent"
REASON_CYCLE = "cycle"


class RepairReport(BaseModel):
    """What the load pass dropped, detached, filled in or rewrote."""

    stored_version: int | None = None
    version_reset: bool = False
    discarded_node_count: int = 0
    dropped_nodes: list[dict[str, str]] = Field(default_factory=list)
    dropped_edges: list[dict[str, str]] = Field(default_factory=list)
    detached_parents: list[dict[str, str]] = Field(default_factory=list)
    backfilled_layout: list[str] = Field(default_factory=list)
    normalized_edges: list[str] = Field(default_factory=list)
    renamed_edges: list[dict[str, str]] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True if the loaded document differs from what was stored."""
        return bool(
            self.version_reset
            or self.dropped_nodes
            or self.dropped_edges
            or self.detached_parents
            or self.backfilled_layout
            or self.normalized_edges
            or self.renamed_edges
        )

    def messages(self) -> list[str]:
        """Human-readable one-liners, one per repair."""
        lines: list[str] = []
        if self.version_reset:
            lines.append(
                f"Stored schema version {self.stored_version} is older than {SCHEMA_VERSION}; "
                f"discarded {self.discarded_node_count} node(s)"
            )
        lines.extend(f"Dropped node {d['id']}: {d['reason']}" for d in self.dropped_nodes)
        lines.extend(f"Dropped edge {d['id']}: {d['reason']}" for d in self.dropped_edges)
        lines.extend(
            f"Detached {d['node_id']} from {d['parent_id']}: {d['reason']}"
            for d in self.detached_parents
        )
        lines.extend(
            f"Renamed edge {d['id']} to {d['new_id']}: duplicate id" for d in self.renamed_edges
        )
        return lines


@dataclass
class MigrationResult:
    document: DesignDocument
    report: RepairReport


# ---------------------------------------------------------------------------
# Graph healing (steps 3-5): shared with DesignEngine.load_design
# ---------------------------------------------------------------------------


def heal_graph(
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    *,
    layout: ContainerLayout = DEFAULT_LAYOUT,
    report: RepairReport | None = None,
) -> tuple[dict[str, Node], list[Edge], RepairReport]:
    """Restore the structural invariants on an already-validated graph.

    Parent links are checked in document order against the current
    state, so breaking one link of a cycle clears the cycle for the
    nodes that follow: a two-node cycle loses exactly one link.
    Repeated connections are dropped and colliding edge ids get a
    suffix, so every edge id names exactly one edge.
    """
    report = report if report is not None else RepairReport()

    arena: dict[str, Node] = {}
    for node in nodes:
        if node.id in arena:
            _drop_node(report, node.id, "duplicate id")
            continue
        arena[node.id] = node
    view = DesignDocument(nodes=arena)

    for node in view.iter_nodes():
        parent_id = node.parent_id
        if parent_id is None:
            continue
        reason: str | None = None
        if not view.has_node(parent_id):
            reason = REASON_MISSING_PARENT
        elif parent_id == node.id:
            reason = REASON_SELF_PARENT
        elif in_cycle(view, node.id):
            reason = REASON_CYCLE
        if reason is not None:
            node.detach()
            report.detached_parents.append(
                {"node_id": node.id, "parent_id": parent_id, "reason": reason}
            )
            log.warning(
                "migration.parent_detached", node_id=node.id, parent_id=parent_id, reason=reason
            )

    for node in view.iter_nodes():
        if apply_container_layout(node, layout):
            report.backfilled_layout.append(node.id)

    healed_edges: list[Edge] = []
    edge_ids: set[str] = set()
    for edge in edges:
        missing = [e for e in (edge.source_id, edge.target_id) if not view.has_node(e)]
        if missing:
            _drop_edge(report, edge.id, f"endpoint not found: {', '.join(missing)}")
            continue
        if any(kept.same_connection(edge) for kept in healed_edges):
            _drop_edge(report, edge.id, "duplicate connection")
            continue
        if edge.kind != EdgeKind.DELETABLE.value:
            report.normalized_edges.append(edge.id)
            edge.kind = EdgeKind.DELETABLE.value
        if edge.id in edge_ids:
            new_id = unique_edge_id(edge.id, edge_ids)
            report.renamed_edges.append({"id": edge.id, "new_id": new_id})
            log.warning("migration.edge_renamed", edge_id=edge.id, new_id=new_id)
            edge.id = new_id
        edge_ids.add(edge.id)
        healed_edges.append(edge)

    return dict(view.nodes), healed_edges, report


# ---------------------------------------------------------------------------
# Full snapshot migration (steps 1-5)
# ---------------------------------------------------------------------------


def migrate_snapshot(
    raw: Any,
    *,
    layout: ContainerLayout = DEFAULT_LAYOUT,
    default_name: str = DEFAULT_DESIGN_NAME,
    default_language: LanguagePreference = LanguagePreference.TYPESCRIPT,
) -> MigrationResult:
    """Turn a stored snapshot (parsed JSON, or None) into a valid document."""
    report = RepairReport()
    empty = DesignDocument(name=default_name, language_preference=default_language)

    if not isinstance(raw, Mapping):
        if raw is not None:
            log.warning("migration.unreadable_snapshot", payload_type=type(raw).__name__)
        return MigrationResult(empty, report)

    language = _language(raw.get("languagePreference"), default_language)
    empty.language_preference = language

    stored_version = _stored_version(raw)
    report.stored_version = stored_version
    if stored_version is None or stored_version < SCHEMA_VERSION:
        raw_nodes = raw.get("nodes")
        report.version_reset = True
        report.discarded_node_count = len(raw_nodes) if isinstance(raw_nodes, list) else 0
        log.warning(
            "migration.version_reset",
            stored_version=stored_version,
            current_version=SCHEMA_VERSION,
            discarded_nodes=report.discarded_node_count,
        )
        return MigrationResult(empty, report)
    if stored_version > SCHEMA_VERSION:
        log.warning(
            "migration.newer_schema", stored_version=stored_version, current_version=SCHEMA_VERSION
        )

    nodes = list(_validated_nodes(raw.get("nodes"), report))
    edges = list(_validated_edges(raw.get("edges"), report))
    arena, healed_edges, report = heal_graph(nodes, edges, layout=layout, report=report)

    name = raw.get("designName")
    design_id = raw.get("designId")
    document = DesignDocument(
        nodes=arena,
        edges=healed_edges,
        name=name if isinstance(name, str) and name else default_name,
        design_id=design_id if isinstance(design_id, str) and design_id else None,
        language_preference=language,
    )
    if report.changed:
        log.info(
            "migration.repaired",
            dropped_nodes=len(report.dropped_nodes),
            dropped_edges=len(report.dropped_edges),
            detached_parents=len(report.detached_parents),
            backfilled_layout=len(report.backfilled_layout),
            normalized_edges=len(report.normalized_edges),
            renamed_edges=len(report.renamed_edges),
        )
    return MigrationResult(document, report)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stored_version(raw: Mapping[str, Any]) -> int | None:
    # Early snapshots used ``storeVersion``.
    version = raw.get("schemaVersion", raw.get("storeVersion"))
    if isinstance(version, bool) or not isinstance(version, int):
        return None
    return version


def _language(value: Any, default: LanguagePreference) -> LanguagePreference:
    try:
        return LanguagePreference(value)
    except ValueError:
        return default


def _service_id(raw: Mapping[str, Any]) -> Any:
    data = raw.get("data")
    if not isinstance(data, Mapping):
        return None
    return data.get("serviceId", data.get("service_id"))


def _validated_nodes(raw_nodes: Any, report: RepairReport) -> Iterable[Node]:
    if not isinstance(raw_nodes, list):
        return
    for index, raw in enumerate(raw_nodes):
        if not isinstance(raw, Mapping):
            _drop_node(report, f"#{index}", "not an object")
            continue
        node_id = str(raw.get("id") or f"#{index}")
        if not _service_id(raw):
            _drop_node(report, node_id, "missing serviceId")
            continue
        try:
            yield Node.model_validate(raw)
        except ValidationError as exc:
            _drop_node(report, node_id, f"invalid node: {exc.error_count()} error(s)")


def _validated_edges(raw_edges: Any, report: RepairReport) -> Iterable[Edge]:
    if not isinstance(raw_edges, list):
        return
    for index, raw in enumerate(raw_edges):
        edge_id = str(raw.get("id") or f"#{index}") if isinstance(raw, Mapping) else f"#{index}"
        try:
            yield Edge.model_validate(raw)
        except ValidationError as exc:
            _drop_edge(report, edge_id, f"invalid edge: {exc.error_count()} error(s)")


def _drop_node(report: RepairReport, node_id: str, reason: str) -> None:
    report.dropped_nodes.append({"id": node_id, "reason": reason})
    log.warning("migration.node_dropped", node_id=node_id, reason=reason)


def _drop_edge(report: RepairReport, edge_id: str, reason: str) -> None:
    report.dropped_edges.append({"id": edge_id, "reason": reason})
    log.warning("migration.edge_dropped", edge_id=edge_id, reason=reason)
