"""Optional kind-compatibility rules for nesting and connections.

The core mutation API only enforces structural invariants (no dangling
references). These rules describe what the palette allows: subnets sit
inside a VPC environment, services sit inside a subnet, and VPC
environments are always top level. Callers opt in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archyra.domain.types import NodeKind

if TYPE_CHECKING:
    from archyra.domain.document import DesignDocument


@dataclass(frozen=True)
class PlacementViolation:
    """Why a nesting or connection was refused."""

    code: str
    message: str


@dataclass(frozen=True)
class PlacementPolicy:
    """Nesting rules by kind, plus per-service subnet restrictions.

    ``subnet_placement`` maps a service id to the subnet kinds it may be
    placed in; services not listed may go in either.
    """

    subnet_placement: dict[str, frozenset[NodeKind]] = field(default_factory=dict)

    def check_parent(
        self, doc: DesignDocument, node_id: str, parent_id: str | None
    ) -> PlacementViolation | None:
        """Validate placing *node_id* inside *parent_id* (None = top level)."""
        node = doc.get_node(node_id)
        if node is None:
            return None
        parent = doc.get_node(parent_id)

        if node.kind is NodeKind.VPC_ENVIRONMENT:
            if parent is not None:
                return PlacementViolation(
                    "VPC_NOT_ROOT", "A VPC environment cannot be nested inside another node"
                )
            return None

        if node.kind.is_subnet:
            if parent is None or parent.kind is not NodeKind.VPC_ENVIRONMENT:
                return PlacementViolation(
                    "SUBNET_OUTSIDE_VPC", "Subnets must be placed inside a VPC environment"
                )
            return None

        if parent is None:
            return None
        if not parent.kind.is_subnet:
            return PlacementViolation(
                "SERVICE_OUTSIDE_SUBNET",
                f"Services can only be nested inside a subnet, not a {parent.kind.value}",
            )
        allowed = self.subnet_placement.get(node.data.service_id)
        if allowed is not None and parent.kind not in allowed:
            return PlacementViolation(
                "SUBNET_NOT_ALLOWED",
                f"{node.data.service_id} cannot be placed in a {parent.kind.value}",
            )
        return None

    def check_connection(
        self, doc: DesignDocument, source_id: str, target_id: str
    ) -> PlacementViolation | None:
        """Refuse self-connections and duplicates in either direction."""
        if source_id == target_id:
            return PlacementViolation("SELF_CONNECTION", "A node cannot connect to itself")
        for edge in doc.edges:
            if {edge.source_id, edge.target_id} == {source_id, target_id}:
                return PlacementViolation(
                    "DUPLICATE_CONNECTION", "These nodes are already connected"
                )
        return None


DEFAULT_POLICY = PlacementPolicy()
