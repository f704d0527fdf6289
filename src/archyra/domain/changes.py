"""Canvas deltas — drag, resize, select and remove events.

The renderer reports interactions as batches of small change records.
Each record is tagged by ``type`` and names the node or edge it targets.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from archyra.domain.document import Dimensions, Position


class NodePositionChange(BaseModel):
    type: Literal["position"] = "position"
    id: str
    position: Position | None = None
    dragging: bool = False


class NodeDimensionsChange(BaseModel):
    type: Literal["dimensions"] = "dimensions"
    id: str
    dimensions: Dimensions | None = None
    resizing: bool = False


class NodeSelectChange(BaseModel):
    type: Literal["select"] = "select"
    id: str
    selected: bool


class NodeRemoveChange(BaseModel):
    type: Literal["remove"] = "remove"
    id: str


class EdgeSelectChange(BaseModel):
    type: Literal["select"] = "select"
    id: str
    selected: bool


class EdgeRemoveChange(BaseModel):
    type: Literal["remove"] = "remove"
    id: str


NodeChange = Annotated[
    NodePositionChange | NodeDimensionsChange | NodeSelectChange | NodeRemoveChange,
    Field(discriminator="type"),
]
EdgeChange = Annotated[EdgeSelectChange | EdgeRemoveChange, Field(discriminator="type")]

NODE_CHANGES: TypeAdapter[list[NodeChange]] = TypeAdapter(list[NodeChange])
EDGE_CHANGES: TypeAdapter[list[EdgeChange]] = TypeAdapter(list[EdgeChange])
