from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from roomchat.auth import current_user_id
from roomchat.models.user import (
    PresenceUpdate,
    ProfileUpdate,
    UserListResponse,
    UserResponse,
    UserSearchRequest,
)
from roomchat.services import user_service

router = APIRouter()


@router.get("/users", response_model=UserResponse)
async def get_profile(
    request: Request,
    user_id: int = Depends(current_user_id),
) -> UserResponse:
    user = await user_service.get_profile(request.app.state.pool_manager, user_id)
    return UserResponse(user=user)


@router.put("/users", response_model=UserResponse)
async def update_profile(
    request: Request,
    body: ProfileUpdate,
    user_id: int = Depends(current_user_id),
) -> UserResponse:
    user = await user_service.update_profile(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        name=body.name,
        avatar=body.avatar,
    )
    return UserResponse(user=user)


@router.post("/users", response_model=UserListResponse)
async def search_users(
    request: Request,
    body: UserSearchRequest,
    user_id: int = Depends(current_user_id),
) -> UserListResponse:
    users = await user_service.search_users(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        query=body.query,
        limit=body.limit,
    )
    return UserListResponse(users=users)


@router.get("/presence", response_model=UserListResponse)
async def online_users(
    request: Request,
    room_id: int | None = Query(None, alias="roomId"),
    user_id: int = Depends(current_user_id),
) -> UserListResponse:
    users = await user_service.online_users(request.app.state.pool_manager, user_id, room_id)
    return UserListResponse(users=users)


@router.post("/presence")
async def update_presence(
    request: Request,
    body: PresenceUpdate,
    user_id: int = Depends(current_user_id),
) -> dict:
    status = await user_service.update_presence(request.app.state.pool_manager, user_id, body.status)
    return {"message": "Presence updated successfully", "status": status}


@router.put("/presence")
async def heartbeat(
    request: Request,
    user_id: int = Depends(current_user_id),
) -> dict:
    await user_service.heartbeat(request.app.state.pool_manager, user_id)
    return {"message": "Heartbeat updated"}
