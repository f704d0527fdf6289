"""Subcommand modules for archyra.

register_commands() imports command modules lazily so ``archyra --help``
stays fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the ``node`` group and the standalone commands on the root group."""
    from archyra.commands.node import node

    cli.add_command(node)

    from archyra.commands.check import check
    from archyra.commands.design import clear, export, hierarchy, import_cmd, mark_saved, rename, show
    from archyra.commands.edge import connect, disconnect

    for command in (
        show,
        rename,
        clear,
        mark_saved,
        hierarchy,
        export,
        import_cmd,
        connect,
        disconnect,
        check,
    ):
        cli.add_command(command)
