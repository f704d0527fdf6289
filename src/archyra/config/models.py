"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, archyra.toml only contains
overrides. An empty file (or none at all) is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    """[storage] section."""

    model_config = {"frozen": True}

    record_name: str = "archyra-designer-v5"
    db_filename: str = "archyra.db"


class DesignerConfig(BaseModel):
    """[designer] section.

    ``strict_hierarchy`` rejects parent assignments that would form a
    cycle instead of healing them on the next load.
    ``enforce_placement`` applies the VPC → subnet → service nesting rules.
    """

    model_config = {"frozen": True}

    default_name: str = "Untitled Design"
    default_language: str = "typescript"
    strict_hierarchy: bool = False
    enforce_placement: bool = False


class LayoutConfig(BaseModel):
    """[layout] section — container defaults for the renderer."""

    model_config = {"frozen": True}

    vpc_width: float = 500
    vpc_height: float = 400
    vpc_z_index: int = -2
    subnet_width: float = 220
    subnet_height: float = 180
    subnet_z_index: int = -1


class ArchyraConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    storage: StorageConfig = Field(default_factory=StorageConfig)
    designer: DesignerConfig = Field(default_factory=DesignerConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
