"""BaseService — foundation for the service classes used by the CLI.

Every service receives a :class:`Workspace` at construction time and
returns :class:`ServiceResult` from its public operations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archyra.infrastructure.workspace import Workspace


class BaseService:
    """Holds the workspace; subclasses implement the operations."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace
