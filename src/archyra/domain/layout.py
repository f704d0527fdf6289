"""Default dimensions and stacking order for container nodes.

Containers render beneath what they contain: VPC environments at z -2,
subnets at z -1, services at the renderer default.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from archyra.domain.document import Dimensions, Node
from archyra.domain.types import NodeKind


class ContainerLayout(BaseModel):
    """Default size and z-index per container kind."""

    model_config = {"frozen": True}

    vpc: Dimensions = Field(default_factory=lambda: Dimensions(width=500, height=400))
    vpc_z_index: int = -2
    subnet: Dimensions = Field(default_factory=lambda: Dimensions(width=220, height=180))
    subnet_z_index: int = -1

    def defaults_for(self, kind: NodeKind) -> tuple[Dimensions, int] | None:
        """Return ``(dimensions, z_index)`` for container kinds, None for services."""
        if kind is NodeKind.VPC_ENVIRONMENT:
            return self.vpc, self.vpc_z_index
        if kind.is_subnet:
            return self.subnet, self.subnet_z_index
        return None


DEFAULT_LAYOUT = ContainerLayout()


def apply_container_layout(node: Node, layout: ContainerLayout = DEFAULT_LAYOUT) -> bool:
    """Backfill missing dimensions and z-index on a container node.

    Explicit values are kept. Returns True if anything was filled in.
    """
    defaults = layout.defaults_for(node.kind)
    if defaults is None:
        return False
    dimensions, z_index = defaults
    changed = False
    if node.dimensions is None:
        node.dimensions = dimensions
        changed = True
    if node.z_index is None:
        node.z_index = z_index
        changed = True
    return changed
