from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from roomchat.auth import current_user_id
from roomchat.models.room import (
    CreateDMRequest,
    CreateRoomRequest,
    DMResponse,
    LeaveRoomResponse,
    RoomIdRequest,
    RoomListResponse,
    RoomResponse,
)
from roomchat.services import room_service

router = APIRouter()


@router.get("/rooms", response_model=RoomListResponse)
async def list_rooms(
    request: Request,
    user_id: int = Depends(current_user_id),
) -> RoomListResponse:
    rooms = await room_service.list_rooms(request.app.state.pool_manager, user_id)
    return RoomListResponse(rooms=rooms)


@router.post("/rooms", response_model=RoomResponse, status_code=201)
async def create_room(
    request: Request,
    body: CreateRoomRequest,
    user_id: int = Depends(current_user_id),
) -> RoomResponse:
    room = await room_service.create_room(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        name=body.name,
        description=body.description,
        room_type=body.type,
        member_ids=body.member_ids,
    )
    return RoomResponse(room=room)


@router.put("/rooms")
async def join_room(
    request: Request,
    body: RoomIdRequest,
    user_id: int = Depends(current_user_id),
) -> dict:
    await room_service.join_room(request.app.state.pool_manager, user_id, body.room_id)
    return {"message": "Successfully joined room"}


@router.delete("/rooms", response_model=LeaveRoomResponse)
async def leave_room(
    request: Request,
    body: RoomIdRequest | None = None,
    user_id: int = Depends(current_user_id),
) -> LeaveRoomResponse:
    """Leave a room; the room is deleted when its last member leaves."""
    room_id = body.room_id if body else None
    return await room_service.leave_room(request.app.state.pool_manager, user_id, room_id)


@router.post("/create-dm", response_model=DMResponse)
async def create_dm(
    request: Request,
    body: CreateDMRequest,
    user_id: int = Depends(current_user_id),
) -> DMResponse:
    """Look up or create the DM room shared with ``targetUserId``."""
    return await room_service.create_dm(
        request.app.state.pool_manager, user_id, body.target_user_id
    )


@router.delete("/delete-room")
async def delete_room(
    request: Request,
    body: RoomIdRequest | None = None,
    user_id: int = Depends(current_user_id),
) -> dict:
    room_id = body.room_id if body else None
    await room_service.delete_room(request.app.state.pool_manager, user_id, room_id)
    return {"message": "Room deleted successfully", "room_id": room_id, "deleted_by": user_id}
