"""Command: design integrity checking and repair."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from archyra.commands._base import ArchCommand

if TYPE_CHECKING:
    from archyra.commands._context import AppContext


@click.command(
    cls=ArchCommand,
    examples="""\
  archyra check
  archyra check --errors-only
  archyra check --fix""",
)
@click.option("--errors-only", is_flag=True, help="Hide warnings.")
@click.option("--fix", is_flag=True, help="Write the repaired design back to storage.")
@click.pass_obj
def check(app: AppContext, errors_only: bool, fix: bool) -> None:
    """Check the stored design and optionally repair it."""
    from archyra.services.check import CheckService

    svc = CheckService(app.workspace)
    if fix:
        app.emit(svc.fix())
    else:
        app.emit(svc.check(min_severity="error" if errors_only else "warning"))
