"""Node kinds, edge kinds and the small enums shared by every layer.

The node kind is the tagged variant that drives containment: a VPC
environment holds subnets, a subnet holds services.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from pydantic import Field


class NodeKind(StrEnum):
    """Structural kind of a diagram node."""

    SERVICE = "service"
    VPC_ENVIRONMENT = "vpc-environment"
    PUBLIC_SUBNET = "public-subnet"
    PRIVATE_SUBNET = "private-subnet"

    @property
    def is_container(self) -> bool:
        return self is not NodeKind.SERVICE

    @property
    def is_subnet(self) -> bool:
        return self in SUBNET_KINDS

    @property
    def render_type(self) -> RenderType:
        """Renderer component used for this kind."""
        if self is NodeKind.VPC_ENVIRONMENT:
            return RenderType.VPC_ENVIRONMENT
        if self.is_subnet:
            return RenderType.SUBNET
        return RenderType.SERVICE_NODE

    @classmethod
    def from_service_id(cls, service_id: str | None) -> NodeKind:
        """Infer the kind from a palette service id (containers share their kind's name)."""
        try:
            return cls(service_id)
        except ValueError:
            return cls.SERVICE


class RenderType(StrEnum):
    """Renderer component names understood by the canvas."""

    SERVICE_NODE = "serviceNode"
    VPC_ENVIRONMENT = "vpcEnvironment"
    SUBNET = "subnet"


class EdgeKind(StrEnum):
    """Interaction kind of an edge. Only one exists today."""

    DELETABLE = "deletable"


class ActiveTab(StrEnum):
    """Side panel tab."""

    PROPERTIES = "properties"
    TERRAFORM = "terraform"
    PULUMI = "pulumi"


class LanguagePreference(StrEnum):
    """Target language for Pulumi export."""

    TYPESCRIPT = "typescript"
    PYTHON = "python"


SUBNET_KINDS: frozenset[NodeKind] = frozenset({NodeKind.PUBLIC_SUBNET, NodeKind.PRIVATE_SUBNET})
CONTAINER_KINDS: frozenset[NodeKind] = frozenset({NodeKind.VPC_ENVIRONMENT, *SUBNET_KINDS})

# Property values are JSON scalars only (no NaN or infinities).
PropertyValue = str | int | Annotated[float, Field(allow_inf_nan=False)] | bool
