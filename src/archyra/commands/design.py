"""Commands: whole-design operations (show, rename, clear, save, export, import)."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from archyra.commands._base import ArchCommand

if TYPE_CHECKING:
    from archyra.commands._context import AppContext


@click.command(
    cls=ArchCommand,
    examples="""\
  archyra show
  archyra --json show""",
)
@click.pass_obj
def show(app: AppContext) -> None:
    """Show the design name, counts, nodes and edges."""
    app.emit(app.design_service().show())


@click.command(
    cls=ArchCommand,
    examples="""\
  archyra rename 'Payments platform'""",
)
@click.argument("name")
@click.pass_obj
def rename(app: AppContext, name: str) -> None:
    """Rename the design."""
    app.emit(app.design_service().rename(name))


@click.command(cls=ArchCommand)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def clear(app: AppContext, yes: bool) -> None:
    """Remove every node and edge and reset the design name."""
    if not yes:
        click.confirm("Clear the whole design?", abort=True, err=True)
    app.emit(app.design_service().clear())


@click.command(
    "mark-saved",
    cls=ArchCommand,
    examples="""\
  archyra mark-saved d-2024-001""",
)
@click.argument("design_id")
@click.pass_obj
def mark_saved(app: AppContext, design_id: str) -> None:
    """Record that the design was saved under DESIGN_ID."""
    app.emit(app.design_service().mark_saved(design_id))


@click.command(
    cls=ArchCommand,
    examples="""\
  archyra hierarchy
  archyra --json hierarchy""",
)
@click.pass_obj
def hierarchy(app: AppContext) -> None:
    """Show each VPC environment with its subnets and their services."""
    app.emit(app.design_service().hierarchy())


@click.command(
    cls=ArchCommand,
    examples="""\
  archyra export design.json""",
)
@click.argument("path", type=click.Path(dir_okay=False, writable=True, path_type=Path))
@click.pass_obj
def export(app: AppContext, path: Path) -> None:
    """Write the design to a JSON file."""
    app.emit(app.design_service().export_design(path))


@click.command(
    "import",
    cls=ArchCommand,
    examples="""\
  archyra import design.json""",
)
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def import_cmd(app: AppContext, path: Path) -> None:
    """Replace the design with the contents of a JSON file."""
    app.emit(app.design_service().import_design(path))
