from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from roomchat.auth import current_user_id, get_config
from roomchat.config import AppConfig
from roomchat.models.message import (
    ForwardRequest,
    MarkReadRequest,
    MessageResponse,
    MessagesResponse,
    SendMessageRequest,
    UploadFileRequest,
)
from roomchat.models.room import RoomIdRequest
from roomchat.services import message_service

router = APIRouter()


@router.get("/messages", response_model=MessagesResponse)
async def get_room_messages(
    request: Request,
    room_id: int | None = Query(None, alias="roomId"),
    user_id: int = Depends(current_user_id),
) -> MessagesResponse:
    messages = await message_service.get_messages(request.app.state.pool_manager, user_id, room_id)
    return MessagesResponse(messages=messages)


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    request: Request,
    body: SendMessageRequest,
    user_id: int = Depends(current_user_id),
) -> MessageResponse:
    message = await message_service.send_message(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        room_id=body.room_id,
        content=body.content,
        message_type=body.type,
    )
    return MessageResponse(message=message)


@router.put("/messages")
async def mark_messages_read(
    request: Request,
    body: MarkReadRequest,
    user_id: int = Depends(current_user_id),
) -> dict:
    updated = await message_service.mark_messages_read(
        request.app.state.pool_manager, user_id, body.message_ids
    )
    return {"updated_count": updated, "message": "Messages marked as read"}


@router.delete("/messages")
async def delete_message(
    request: Request,
    message_id: int | None = Query(None, alias="messageId"),
    user_id: int = Depends(current_user_id),
) -> dict:
    await message_service.delete_message(request.app.state.pool_manager, user_id, message_id)
    return {"success": True, "message_id": message_id}


@router.get("/messages-search", response_model=MessagesResponse)
async def search_messages(
    request: Request,
    room_id: int | None = Query(None, alias="roomId"),
    q: str | None = Query(None, description="Case-insensitive substring"),
    user_id: int = Depends(current_user_id),
) -> MessagesResponse:
    messages = await message_service.search_messages(
        request.app.state.pool_manager, user_id, room_id, q
    )
    return MessagesResponse(messages=messages)


@router.post("/messages-forward", response_model=MessageResponse, status_code=201)
async def forward_message(
    request: Request,
    body: ForwardRequest,
    user_id: int = Depends(current_user_id),
) -> MessageResponse:
    message = await message_service.forward_message(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        message_id=body.message_id,
        target_room_id=body.target_room_id,
    )
    return MessageResponse(message=message)


@router.post("/mark-read")
async def mark_room_read(
    request: Request,
    body: RoomIdRequest,
    user_id: int = Depends(current_user_id),
) -> dict:
    await message_service.mark_room_read(request.app.state.pool_manager, user_id, body.room_id)
    return {"message": "Room marked as read", "room_id": body.room_id, "user_id": user_id}


@router.post("/upload-file", response_model=MessageResponse, status_code=201)
async def upload_file(
    request: Request,
    body: UploadFileRequest,
    user_id: int = Depends(current_user_id),
    config: AppConfig = Depends(get_config),
) -> MessageResponse:
    message = await message_service.upload_file(
        pool_manager=request.app.state.pool_manager,
        user_id=user_id,
        room_id=body.room_id,
        file_name=body.file_name,
        file_type=body.file_type,
        file_data=body.file_data,
        max_bytes=config.max_upload_bytes,
    )
    return MessageResponse(message=message)
