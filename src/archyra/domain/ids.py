"""Node and edge ID generation.

Node IDs are opaque and never change once assigned. Edge IDs are derived
from their endpoints and handles, matching the id scheme the canvas uses,
so a repeated connection between the same handles maps to the same id.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Collection

NODE_PREFIX = "node_"
EDGE_PREFIX = "reactflow__edge-"

NODE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]+$")


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"{NODE_PREFIX}{uuid.uuid4().hex[:8]}"


def edge_id_for(
    source_id: str,
    target_id: str,
    source_handle: str | None = None,
    target_handle: str | None = None,
) -> str:
    """Derive the edge ID for a connection.

    Examples:
        >>> edge_id_for("a", "b")
        'reactflow__edge-a-b'
        >>> edge_id_for("a", "b", "right", "left")
        'reactflow__edge-aright-bleft'
    """
    return f"{EDGE_PREFIX}{source_id}{source_handle or ''}-{target_id}{target_handle or ''}"


def is_valid_node_id(node_id: str) -> bool:
    """Check that *node_id* is a non-empty token safe to use as an identifier."""
    return NODE_ID_PATTERN.match(node_id) is not None


def unique_edge_id(base: str, taken: Collection[str]) -> str:
    """Return *base*, or *base* with the first free ``~N`` suffix.

    Derived edge IDs are ambiguous when node IDs contain ``-``
    (``a`` → ``b-c`` and ``a-b`` → ``c`` both derive ``...a-b-c``).

    Examples:
        >>> unique_edge_id("e", set())
        'e'
        >>> unique_edge_id("e", {"e", "e~1"})
        'e~2'
    """
    if base not in taken:
        return base
    n = 1
    while f"{base}~{n}" in taken:
        n += 1
    return f"{base}~{n}"
