from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response

from roomchat.auth import current_user_id
from roomchat.errors import BadRequest
from roomchat.models.message import ReactionRequest, ReactionsResponse, RoomReactionsResponse
from roomchat.services import reaction_service

router = APIRouter()


@router.get("/reactions", response_model=ReactionsResponse | RoomReactionsResponse)
async def list_reactions(
    request: Request,
    message_id: int | None = Query(None, alias="messageId"),
    room_id: int | None = Query(None, alias="roomId"),
    user_id: int = Depends(current_user_id),
) -> ReactionsResponse | RoomReactionsResponse:
    """Grouped reactions for one message, or for every message of a room."""
    pool_manager = request.app.state.pool_manager
    if message_id:
        reactions, total = await reaction_service.list_reactions(pool_manager, user_id, message_id)
        return ReactionsResponse(reactions=reactions, total=total)
    if room_id:
        per_message = await reaction_service.list_room_reactions(pool_manager, user_id, room_id)
        return RoomReactionsResponse(reactions=per_message)
    raise BadRequest("Message ID is required")


@router.post("/reactions")
async def add_reaction(
    request: Request,
    response: Response,
    body: ReactionRequest,
    user_id: int = Depends(current_user_id),
) -> dict:
    row = await reaction_service.add_reaction(
        request.app.state.pool_manager, user_id, body.message_id, body.emoji
    )
    if row is None:
        return {"success": True, "action": "already_exists", "message": "Reaction already exists"}
    response.status_code = 201
    return {"success": True, "action": "added", "reaction": row}


@router.delete("/reactions")
async def remove_reaction(
    request: Request,
    message_id: int | None = Query(None, alias="messageId"),
    emoji: str | None = Query(None),
    user_id: int = Depends(current_user_id),
) -> dict:
    row = await reaction_service.remove_reaction(
        request.app.state.pool_manager, user_id, message_id, emoji
    )
    return {"success": True, "action": "removed", "reaction": row}
