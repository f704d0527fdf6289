"""AppContext — shared Click context for all commands.

Created once by the root group and passed down with ``@click.pass_obj``.
The workspace (and with it the database) is opened lazily, so ``--help``
and ``--version`` never touch storage.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from archyra.config.logging import configure_logging
from archyra.output.formatters import format_result

if TYPE_CHECKING:
    from archyra.config.settings import ArchyraSettings
    from archyra.infrastructure.workspace import Workspace
    from archyra.services.design import DesignService
    from archyra.services.result import ServiceResult


class AppContext:
    """Settings, the lazily opened workspace, and result emission."""

    def __init__(self, settings: ArchyraSettings) -> None:
        self.settings = settings
        self._workspace: Workspace | None = None
        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def workspace(self) -> Workspace:
        if self._workspace is None:
            from archyra.infrastructure.workspace import Workspace

            self._workspace = Workspace(self.settings)
        return self._workspace

    def design_service(self) -> DesignService:
        from archyra.services.design import DesignService

        return DesignService(self.workspace)

    def emit(self, result: ServiceResult) -> None:
        """Print *result*; a failure goes to stderr and exits with status 1.

        Warnings go to stderr in human mode so piped output stays clean.
        In JSON mode they are part of the payload.
        """
        output = format_result(result, json_output=self.settings.json_output)
        if not result.ok:
            click.echo(output, err=True)
            raise SystemExit(1)
        click.echo(output)
        if not self.settings.json_output:
            for warning in result.warnings:
                click.echo(f"WARNING: {warning}", err=True)

    def close(self) -> None:
        if self._workspace is not None:
            self._workspace.close()
            self._workspace = None
