from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from roomchat.auth import current_user_id
from roomchat.models.room import RoomMembersResponse
from roomchat.models.user import AddMemberRequest, TransferAdminRequest
from roomchat.services import member_service

router = APIRouter()


@router.get("/room-members", response_model=RoomMembersResponse)
async def list_members(
    request: Request,
    room_id: int | None = Query(None, alias="roomId"),
    user_id: int = Depends(current_user_id),
) -> RoomMembersResponse:
    return await member_service.list_members(request.app.state.pool_manager, user_id, room_id)


@router.post("/room-members")
async def add_member(
    request: Request,
    body: AddMemberRequest,
    user_id: int = Depends(current_user_id),
) -> dict:
    added = await member_service.add_member(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        room_id=body.room_id,
        new_member_id=body.user_id,
    )
    return {"message": "User added to room successfully", "user": added}


@router.delete("/room-members")
async def remove_member(
    request: Request,
    room_id: int | None = Query(None, alias="roomId"),
    member_id: int | None = Query(None, alias="userId"),
    user_id: int = Depends(current_user_id),
) -> dict:
    await member_service.remove_member(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        room_id=room_id,
        member_id=member_id,
    )
    return {"success": True, "message": "User removed from room successfully"}


@router.post("/room-members/transfer-admin")
async def transfer_admin(
    request: Request,
    body: TransferAdminRequest,
    user_id: int = Depends(current_user_id),
) -> dict:
    await member_service.transfer_admin(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        room_id=body.room_id,
        new_admin_id=body.new_admin_id,
    )
    return {"success": True, "message": "Admin role transferred successfully"}
