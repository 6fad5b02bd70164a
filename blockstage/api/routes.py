from __future__ import annotations

import asyncio
import contextlib

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from blockstage import catalog
from blockstage.api.deps import get_stage
from blockstage.api.models import (
    Actor,
    ActorCreateRequest,
    ActorListResponse,
    BlockInstance,
    BlockSubmitRequest,
    BlockTypeOut,
    CatalogResponse,
    InputEditRequest,
    InputSpecOut,
    PlayResponse,
    ReorderRequest,
    StatusResponse,
)
from blockstage.errors import ActorBusy, ActorNotFound, BlockNotFound, UnknownBlockType
from blockstage.stage import Stage
from blockstage.websocket_hub import hub

router = APIRouter()


def _http_error(e: ValueError) -> HTTPException:
    if isinstance(e, (ActorNotFound, BlockNotFound, UnknownBlockType)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ActorBusy):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


def _block_type_out(bt: catalog.BlockType) -> BlockTypeOut:
    return BlockTypeOut(
        id=bt.id,
        category=bt.category.value,
        label=bt.label,
        is_container=bt.is_container,
        unit=bt.unit,
        inputs=[
            InputSpecOut(name=s.name, kind=s.kind, default=s.default, min=s.min, max=s.max) for s in bt.inputs
        ],
    )


@router.websocket("/ws/stage")
async def stage_updates_ws(websocket: WebSocket) -> None:
    queue = await hub.connect(websocket)
    sender = asyncio.create_task(hub.pump(websocket, queue))

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await sender
        await hub.disconnect(websocket)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/catalog", response_model=CatalogResponse)
async def catalog_route(category: str | None = None) -> CatalogResponse:
    try:
        types = catalog.list_by_category(category) if category else catalog.all_block_types()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return CatalogResponse(block_types=[_block_type_out(bt) for bt in types])


@router.get("/actors", response_model=ActorListResponse)
async def list_actors_route(stage: Stage = Depends(get_stage)) -> ActorListResponse:
    return ActorListResponse(actors=stage.actors(), selected_actor_id=stage.selected_actor_id)


@router.post("/actors", response_model=Actor, status_code=status.HTTP_201_CREATED)
async def add_actor_route(payload: ActorCreateRequest, stage: Stage = Depends(get_stage)) -> Actor:
    return stage.add_actor(
        display_name=payload.display_name,
        x=payload.x,
        y=payload.y,
        visual_tag=payload.visual_tag,
    )


@router.get("/actors/{actor_id}", response_model=Actor)
async def get_actor_route(actor_id: int, stage: Stage = Depends(get_stage)) -> Actor:
    try:
        return stage.get_actor(actor_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.delete("/actors/{actor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_actor_route(actor_id: int, stage: Stage = Depends(get_stage)) -> None:
    try:
        stage.delete_actor(actor_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.post("/actors/{actor_id}/select", response_model=Actor)
async def select_actor_route(actor_id: int, stage: Stage = Depends(get_stage)) -> Actor:
    try:
        return stage.select_actor(actor_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.post("/actors/{actor_id}/blocks", response_model=BlockInstance, status_code=status.HTTP_201_CREATED)
async def submit_block_route(
    actor_id: int,
    payload: BlockSubmitRequest,
    stage: Stage = Depends(get_stage),
) -> BlockInstance:
    try:
        return stage.submit_block(actor_id, payload.type_id, payload.inputs, parent_id=payload.parent_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.delete("/actors/{actor_id}/blocks", response_model=Actor)
async def clear_program_route(actor_id: int, stage: Stage = Depends(get_stage)) -> Actor:
    try:
        stage.clear_program(actor_id)
        return stage.get_actor(actor_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.post("/actors/{actor_id}/blocks/reorder", response_model=Actor)
async def reorder_blocks_route(actor_id: int, payload: ReorderRequest, stage: Stage = Depends(get_stage)) -> Actor:
    try:
        stage.reorder_blocks(actor_id, payload.from_index, payload.to_index)
        return stage.get_actor(actor_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.patch("/actors/{actor_id}/blocks/{block_id}", response_model=BlockInstance)
async def edit_input_route(
    actor_id: int,
    block_id: str,
    payload: InputEditRequest,
    stage: Stage = Depends(get_stage),
) -> BlockInstance:
    try:
        return stage.edit_input(actor_id, block_id, payload.name, payload.value)
    except ValueError as e:
        raise _http_error(e) from e


@router.delete("/actors/{actor_id}/blocks/{block_id}", response_model=BlockInstance)
async def remove_block_route(actor_id: int, block_id: str, stage: Stage = Depends(get_stage)) -> BlockInstance:
    try:
        return stage.remove_block(actor_id, block_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.post(
    "/actors/{actor_id}/blocks/{block_id}/duplicate",
    response_model=BlockInstance,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_block_route(actor_id: int, block_id: str, stage: Stage = Depends(get_stage)) -> BlockInstance:
    try:
        return stage.duplicate_block(actor_id, block_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.post("/play", response_model=PlayResponse)
async def play_route(wait: bool = False, stage: Stage = Depends(get_stage)) -> PlayResponse:
    started = stage.play_all()
    if wait:
        await stage.wait_idle()
    return PlayResponse(started=started, is_playing=stage.is_playing)


@router.post("/stop", response_model=StatusResponse)
async def stop_route(stage: Stage = Depends(get_stage)) -> StatusResponse:
    await stage.stop_all()
    return StatusResponse(is_playing=stage.is_playing, running_actor_ids=stage.coordinator.running_actor_ids())


@router.post("/actors/{actor_id}/play", response_model=PlayResponse)
async def play_actor_route(actor_id: int, stage: Stage = Depends(get_stage)) -> PlayResponse:
    try:
        started = [actor_id] if stage.play_actor(actor_id) else []
    except ValueError as e:
        raise _http_error(e) from e
    return PlayResponse(started=started, is_playing=stage.is_playing)


@router.post("/actors/{actor_id}/stop", response_model=Actor)
async def stop_actor_route(actor_id: int, stage: Stage = Depends(get_stage)) -> Actor:
    try:
        await stage.stop_actor(actor_id)
        return stage.get_actor(actor_id)
    except ValueError as e:
        raise _http_error(e) from e


@router.get("/status", response_model=StatusResponse)
async def status_route(stage: Stage = Depends(get_stage)) -> StatusResponse:
    return StatusResponse(is_playing=stage.is_playing, running_actor_ids=stage.coordinator.running_actor_ids())
