"""Parent/child hierarchy derived from ``parent_id`` links.

Everything here is a pure read over the node arena. ``parent_id`` is a
weak reference, so traversals tolerate dangling links and cycles: the
chain walk keeps a visited set and stops at the first revisit.

The nested VPC → subnet → service view (:func:`vpc_hierarchy`) is the
only contract the Terraform/Pulumi generators depend on.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, TypeAlias

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from archyra.domain.document import Node, Position
from archyra.domain.layout import DEFAULT_LAYOUT, ContainerLayout
from archyra.domain.types import NodeKind

if TYPE_CHECKING:
    from archyra.domain.document import DesignDocument

_Graph: TypeAlias = nx.DiGraph


class SubnetHierarchy(BaseModel):
    """A subnet and the nodes placed directly inside it."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    subnet: Node
    services: list[Node] = Field(default_factory=list)


class VpcHierarchy(BaseModel):
    """A VPC environment with its subnets partitioned by kind."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    vpc: Node
    public_subnets: list[SubnetHierarchy] = Field(default_factory=list)
    private_subnets: list[SubnetHierarchy] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Graph view
# ---------------------------------------------------------------------------


def parent_graph(doc: DesignDocument) -> _Graph:
    """Build a parent → child DiGraph over every node.

    Links to parents that are not in the document are left out.
    """
    g: _Graph = nx.DiGraph()
    for node in doc.iter_nodes():
        g.add_node(node.id, kind=node.kind.value)
    for node in doc.iter_nodes():
        if node.parent_id is not None and doc.has_node(node.parent_id):
            g.add_edge(node.parent_id, node.id)
    return g


def get_children(doc: DesignDocument, parent_id: str) -> list[Node]:
    """Direct children of *parent_id*, in document order. Not transitive."""
    return [n for n in doc.iter_nodes() if n.parent_id == parent_id]


def descendants(doc: DesignDocument, node_id: str) -> set[str]:
    """All transitive descendants of *node_id* (excluding the node itself)."""
    if not doc.has_node(node_id):
        return set()
    return set(nx.descendants(parent_graph(doc), node_id)) - {node_id}


# ---------------------------------------------------------------------------
# Parent-chain walks and cycle detection
# ---------------------------------------------------------------------------


def walk_parents(doc: DesignDocument, node_id: str) -> Iterator[str]:
    """Yield the ancestors of *node_id*, nearest first.

    Stops at a missing parent or at the first node seen twice, so the
    walk terminates on cyclic data.
    """
    visited = {node_id}
    node = doc.get_node(node_id)
    while node is not None and node.parent_id is not None:
        parent_id = node.parent_id
        if parent_id in visited:
            return
        visited.add(parent_id)
        yield parent_id
        node = doc.get_node(parent_id)


def has_cycle(doc: DesignDocument, node_id: str) -> bool:
    """True if the parent chain starting at *node_id* revisits any node.

    This also flags nodes that hang below a cycle without being part
    of it; see :func:`in_cycle` for membership.
    """
    visited: set[str] = set()
    current: str | None = node_id
    while current is not None:
        if current in visited:
            return True
        visited.add(current)
        node = doc.get_node(current)
        current = node.parent_id if node is not None else None
    return False


def in_cycle(doc: DesignDocument, node_id: str) -> bool:
    """True if following parents from *node_id* leads back to *node_id*."""
    node = doc.get_node(node_id)
    if node is None or node.parent_id is None:
        return False
    return any(ancestor == node_id for ancestor in _chain_until_repeat(doc, node.parent_id))


def _chain_until_repeat(doc: DesignDocument, start: str) -> Iterator[str]:
    visited: set[str] = set()
    current: str | None = start
    while current is not None and current not in visited:
        yield current
        visited.add(current)
        node = doc.get_node(current)
        current = node.parent_id if node is not None else None


def would_create_cycle(doc: DesignDocument, node_id: str, parent_id: str) -> bool:
    """True if making *parent_id* the parent of *node_id* closes a loop."""
    if node_id == parent_id:
        return True
    return any(ancestor == node_id for ancestor in _chain_until_repeat(doc, parent_id))


def depth(doc: DesignDocument, node_id: str) -> int:
    """Number of resolvable ancestors above *node_id*."""
    return sum(1 for ancestor in walk_parents(doc, node_id) if doc.has_node(ancestor))


# ---------------------------------------------------------------------------
# Code-generation view
# ---------------------------------------------------------------------------


def vpc_hierarchy(doc: DesignDocument) -> list[VpcHierarchy]:
    """Nest every VPC environment with its subnets and their services.

    Direct children of a VPC are partitioned into public and private
    subnets (other kinds are ignored); each subnet carries its direct
    children as ``services``.
    """
    children: dict[str, list[Node]] = {}
    for node in doc.iter_nodes():
        if node.parent_id is not None:
            children.setdefault(node.parent_id, []).append(node)

    result: list[VpcHierarchy] = []
    for vpc in doc.nodes_of_kind(NodeKind.VPC_ENVIRONMENT):
        entry = VpcHierarchy(vpc=vpc)
        for subnet in children.get(vpc.id, []):
            services = list(children.get(subnet.id, []))
            if subnet.kind is NodeKind.PUBLIC_SUBNET:
                entry.public_subnets.append(SubnetHierarchy(subnet=subnet, services=services))
            elif subnet.kind is NodeKind.PRIVATE_SUBNET:
                entry.private_subnets.append(SubnetHierarchy(subnet=subnet, services=services))
        result.append(entry)
    return result


# ---------------------------------------------------------------------------
# Canvas geometry
# ---------------------------------------------------------------------------


def absolute_position(doc: DesignDocument, node_id: str) -> Position | None:
    """Canvas position of *node_id* with every ancestor's offset added."""
    node = doc.get_node(node_id)
    if node is None:
        return None
    x, y = node.position.x, node.position.y
    for ancestor_id in walk_parents(doc, node_id):
        ancestor = doc.get_node(ancestor_id)
        if ancestor is None:
            break
        x += ancestor.position.x
        y += ancestor.position.y
    return Position(x=x, y=y)


def container_at(
    doc: DesignDocument,
    x: float,
    y: float,
    layout: ContainerLayout = DEFAULT_LAYOUT,
) -> Node | None:
    """Innermost container whose absolute bounds contain ``(x, y)``.

    Nested containers are checked before top-level ones. Containers
    without explicit dimensions use the layout defaults.
    """
    containers = [n for n in doc.iter_nodes() if n.kind.is_container]
    containers.sort(key=lambda n: depth(doc, n.id), reverse=True)
    for container in containers:
        size = container.dimensions
        if size is None:
            defaults = layout.defaults_for(container.kind)
            if defaults is None:
                continue
            size = defaults[0]
        origin = absolute_position(doc, container.id)
        if origin is None:
            continue
        if origin.x <= x <= origin.x + size.width and origin.y <= y <= origin.y + size.height:
            return container
    return None
