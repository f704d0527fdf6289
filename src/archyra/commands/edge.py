"""Commands: connect and disconnect nodes."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from archyra.commands._base import ArchCommand

if TYPE_CHECKING:
    from archyra.commands._context import AppContext


@click.command(
    cls=ArchCommand,
    examples="""\
  archyra connect node_api node_db
  archyra connect node_api node_db --source-handle right --target-handle left""",
)
@click.argument("source")
@click.argument("target")
@click.option("--source-handle", default=None, help="Handle on the source node.")
@click.option("--target-handle", default=None, help="Handle on the target node.")
@click.pass_obj
def connect(
    app: AppContext,
    source: str,
    target: str,
    source_handle: str | None,
    target_handle: str | None,
) -> None:
    """Connect SOURCE to TARGET with a new edge."""
    app.emit(
        app.design_service().connect(
            source, target, source_handle=source_handle, target_handle=target_handle
        )
    )


@click.command(cls=ArchCommand)
@click.argument("edge_id")
@click.pass_obj
def disconnect(app: AppContext, edge_id: str) -> None:
    """Remove the edge EDGE_ID."""
    app.emit(app.design_service().disconnect(edge_id))
