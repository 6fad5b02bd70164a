from __future__ import annotations

from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


def new_block_id() -> str:
    return uuid4().hex


class Point(BaseModel):
    x: float
    y: float


class BlockInstance(BaseModel):
    id: str = Field(default_factory=new_block_id)
    type_id: str

    # Raw editor values; coerced against the catalog schema only when executed.
    inputs: dict[str, Any] = Field(default_factory=dict)

    # Loop body for container blocks. Always empty for everything else.
    children: list["BlockInstance"] = Field(default_factory=list)


class Actor(BaseModel):
    id: int
    display_name: str
    position: Point
    heading: float = 0.0
    size: float = 50.0
    visual_tag: str = "bg-blue-500"

    program: list[BlockInstance] = Field(default_factory=list)

    is_running: bool = False
    # Top-level program index only; None whenever the actor is idle.
    current_step_index: int | None = None

    # Transient speech/thought bubble text.
    message: str | None = None

    # Append-only motion history for rendering.
    trail: list[Point] = Field(default_factory=list)


class InputSpecOut(BaseModel):
    name: str
    kind: str
    default: int | float | str
    min: float | None = None
    max: float | None = None


class BlockTypeOut(BaseModel):
    id: str
    category: str
    label: str
    is_container: bool
    unit: str
    inputs: list[InputSpecOut]


class CatalogResponse(BaseModel):
    block_types: list[BlockTypeOut]


class ActorListResponse(BaseModel):
    actors: list[Actor]
    selected_actor_id: int | None = None


class ActorCreateRequest(BaseModel):
    display_name: str | None = Field(default=None, max_length=64)
    x: float | None = None
    y: float | None = None
    visual_tag: str | None = None


class BlockSubmitRequest(BaseModel):
    type_id: str
    inputs: dict[str, Any] = Field(default_factory=dict)
    # Append into this container's children instead of the top level.
    parent_id: str | None = None


class InputEditRequest(BaseModel):
    name: str
    value: Any = None


class ReorderRequest(BaseModel):
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class PlayResponse(BaseModel):
    started: list[int]
    is_playing: bool


class StatusResponse(BaseModel):
    is_playing: bool
    running_actor_ids: list[int]
