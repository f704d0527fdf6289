"""Command group: node creation, removal, nesting and editing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from archyra.commands._base import ArchGroup

if TYPE_CHECKING:
    from archyra.commands._context import AppContext


def _parse_props(values: tuple[str, ...]) -> dict[str, Any]:
    from archyra.services.design import parse_property_value

    props: dict[str, Any] = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--prop")
        props[key] = parse_property_value(raw)
    return props


@click.group(
    cls=ArchGroup,
    examples="""\
  archyra node add vpc-environment --id vpc1
  archyra node add public-subnet --id pub1 --parent vpc1
  archyra node add ec2 --name "Web server" --parent pub1 --prop instanceType=t3.micro
  archyra node set-parent web1 pub1
  archyra node rm vpc1 --cascade""",
)
def node() -> None:
    """Add, remove, nest and edit nodes."""


@node.command(
    examples="""\
  archyra node add vpc-environment --id vpc1 --x 40 --y 40
  archyra node add rds --parent priv1 --prop engine=postgres --prop multiAz=true""",
)
@click.argument("service_id")
@click.option("--id", "node_id", default=None, help="Node id (generated when omitted).")
@click.option("--name", default=None, help="Display name (defaults to SERVICE_ID).")
@click.option("--short-name", default="", help="Short label.")
@click.option("--category", default="", help="Palette category.")
@click.option("--color", default="", help="Accent color.")
@click.option("--x", "x", type=float, default=0.0, help="X position (relative to parent).")
@click.option("--y", "y", type=float, default=0.0, help="Y position (relative to parent).")
@click.option("--parent", "parent_id", default=None, help="Container to place the node in.")
@click.option("--prop", "props", multiple=True, help="Property as KEY=VALUE (repeatable).")
@click.pass_obj
def add(
    app: AppContext,
    service_id: str,
    node_id: str | None,
    name: str | None,
    short_name: str,
    category: str,
    color: str,
    x: float,
    y: float,
    parent_id: str | None,
    props: tuple[str, ...],
) -> None:
    """Add a node for SERVICE_ID (container kinds use their kind name)."""
    app.emit(
        app.design_service().add_node(
            service_id,
            node_id=node_id,
            name=name,
            short_name=short_name,
            category=category,
            color=color,
            x=x,
            y=y,
            parent_id=parent_id,
            properties=_parse_props(props),
        )
    )


@node.command()
@click.argument("node_id")
@click.option("--cascade", is_flag=True, help="Also remove everything nested inside.")
@click.pass_obj
def rm(app: AppContext, node_id: str, cascade: bool) -> None:
    """Remove NODE_ID and its edges. Children are detached unless --cascade."""
    app.emit(app.design_service().remove_node(node_id, cascade=cascade))


@node.command(
    "set-parent",
    examples="""\
  archyra node set-parent web1 pub1
  archyra node set-parent web1 --detach""",
)
@click.argument("node_id")
@click.argument("parent_id", required=False)
@click.option("--detach", is_flag=True, help="Move the node to the top level.")
@click.pass_obj
def set_parent(app: AppContext, node_id: str, parent_id: str | None, detach: bool) -> None:
    """Nest NODE_ID inside PARENT_ID."""
    if detach == (parent_id is not None):
        raise click.UsageError("Give either PARENT_ID or --detach.")
    app.emit(app.design_service().set_parent(node_id, None if detach else parent_id))


@node.command("set-prop")
@click.argument("node_id")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def set_prop(app: AppContext, node_id: str, key: str, value: str) -> None:
    """Set property KEY on NODE_ID. true/false and numbers are typed."""
    app.emit(app.design_service().set_property(node_id, key, value))


@node.command()
@click.argument("node_id")
@click.option("--name", "service_name", default=None, help="New display name.")
@click.option("--short-name", default=None, help="New short label.")
@click.option("--category", default=None, help="New category.")
@click.option("--color", default=None, help="New accent color.")
@click.pass_obj
def update(
    app: AppContext,
    node_id: str,
    service_name: str | None,
    short_name: str | None,
    category: str | None,
    color: str | None,
) -> None:
    """Update descriptive fields of NODE_ID."""
    fields = {
        key: value
        for key, value in (
            ("service_name", service_name),
            ("short_name", short_name),
            ("category", category),
            ("color", color),
        )
        if value is not None
    }
    if not fields:
        raise click.UsageError("Nothing to update.")
    app.emit(app.design_service().update_node(node_id, fields))


@node.command()
@click.argument("node_id", required=False)
@click.pass_obj
def select(app: AppContext, node_id: str | None) -> None:
    """Select NODE_ID, or clear the selection when omitted."""
    app.emit(app.design_service().select(node_id))
