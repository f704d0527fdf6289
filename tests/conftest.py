"""Shared pytest fixtures and test helpers for archyra tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from archyra.config.settings import ArchyraSettings
from archyra.domain.document import DesignDocument, Edge, Node, NodeData
from archyra.domain.types import NodeKind
from archyra.infrastructure.database.engine import init_database
from archyra.infrastructure.workspace import Workspace
from archyra.services.engine import DesignEngine


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine]:
    """Initialized SQLite engine with the snapshot table created."""
    engine = init_database(tmp_path)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def workspace_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary workspace directory, isolated from any ambient config."""
    monkeypatch.delenv("ARCHYRA_CONFIG", raising=False)
    return tmp_path


@pytest.fixture
def settings(workspace_root: Path) -> ArchyraSettings:
    return ArchyraSettings.from_cli(workspace_root=workspace_root)


@pytest.fixture
def workspace(settings: ArchyraSettings) -> Generator[Workspace]:
    """Workspace with an initialized database on a temp directory."""
    ws = Workspace(settings)
    try:
        yield ws
    finally:
        ws.close()


@pytest.fixture
def engine() -> DesignEngine:
    """In-memory engine over an empty design, lazy cycle policy."""
    return DesignEngine()


@pytest.fixture
def _isolated_workspace(workspace_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp workspace so the CLI creates an isolated database.

    Use via ``@pytest.mark.usefixtures("_isolated_workspace")`` on command
    test classes.
    """
    monkeypatch.chdir(workspace_root)


# ---------------------------------------------------------------------------
# Builders shared across test modules
# ---------------------------------------------------------------------------


def make_node(
    node_id: str,
    service_id: str = "ec2",
    *,
    parent_id: str | None = None,
    x: float = 0,
    y: float = 0,
    **data: Any,
) -> Node:
    """Build a node; container kinds are inferred from *service_id*."""
    return Node(
        id=node_id,
        kind=NodeKind.from_service_id(service_id),
        position={"x": x, "y": y},
        parent_id=parent_id,
        data=NodeData(service_id=service_id, service_name=data.pop("name", service_id), **data),
    )


def make_edge(source_id: str, target_id: str, **kwargs: Any) -> Edge:
    return Edge(source_id=source_id, target_id=target_id, **kwargs)


def vpc_document() -> DesignDocument:
    """V (vpc) > P (public subnet) > S (service), plus a loose service L."""
    nodes = [
        make_node("V", "vpc-environment"),
        make_node("P", "public-subnet", parent_id="V", x=20, y=40),
        make_node("S", "ec2", parent_id="P", x=10, y=10),
        make_node("L", "s3", x=700, y=0),
    ]
    return DesignDocument(nodes={n.id: n for n in nodes})


def raw_node(node_id: str, service_id: str = "ec2", **extra: Any) -> dict[str, Any]:
    """A node in the stored (camelCase) shape."""
    raw: dict[str, Any] = {
        "id": node_id,
        "position": {"x": 0, "y": 0},
        "data": {"serviceId": service_id, "serviceName": service_id},
    }
    raw.update(extra)
    return raw


def raw_snapshot(
    nodes: list[dict[str, Any]], edges: list[dict[str, Any]] | None = None, **extra: Any
) -> dict[str, Any]:
    from archyra.services.migration import SCHEMA_VERSION

    snapshot: dict[str, Any] = {
        "nodes": nodes,
        "edges": edges or [],
        "designName": "Stored",
        "designId": "d-1",
        "languagePreference": "python",
        "schemaVersion": SCHEMA_VERSION,
    }
    snapshot.update(extra)
    return snapshot
