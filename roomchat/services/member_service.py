"""Business logic: room membership and admin transfer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from roomchat.db import rooms as rooms_db
from roomchat.db import users as users_db
from roomchat.errors import BadRequest, Forbidden, NotFound
from roomchat.models.room import Room, RoomMembersResponse
from roomchat.models.user import RoomMember, User

if TYPE_CHECKING:
    from roomchat.db.pool_manager import PoolManager

logger = logging.getLogger("roomchat.members")


async def list_members(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int | None,
) -> RoomMembersResponse:
    if not room_id:
        raise BadRequest("Room ID is required")
    pool = pool_manager.pool
    if not await rooms_db.is_member(pool, room_id, user_id):
        raise Forbidden("Not a member of this room")
    room = await rooms_db.get_room(pool, room_id)
    if not room:
        raise NotFound("Room not found")

    rows = await rooms_db.list_members(pool, room_id)
    members = [
        RoomMember.model_validate({**r, "is_admin": r["id"] == room["admin_id"]})
        for r in rows
    ]
    return RoomMembersResponse(members=members, room=Room.model_validate(room))


async def add_member(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int | None,
    new_member_id: int | None,
) -> User:
    if not room_id or not new_member_id:
        raise BadRequest("Room ID and User ID are required")
    pool = pool_manager.pool
    if not await rooms_db.is_member(pool, room_id, user_id):
        raise Forbidden("Not a member of this room")
    room = await rooms_db.get_room(pool, room_id)
    if room and room["type"] == "dm":
        raise Forbidden("Cannot add members to a direct message room")
    if await rooms_db.is_member(pool, room_id, new_member_id):
        raise BadRequest("User is already a member of this room")
    added = await users_db.get_user(pool, new_member_id)
    if not added:
        raise NotFound("User not found")

    await rooms_db.add_member(pool, room_id, new_member_id)
    logger.info("User %s added to room %s by %s", new_member_id, room_id, user_id)
    return User.model_validate(added)


async def remove_member(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int | None,
    member_id: int | None,
) -> None:
    if not room_id or not member_id:
        raise BadRequest("Room ID and User ID are required")
    pool = pool_manager.pool
    room = await rooms_db.get_room(pool, room_id)
    if not room:
        raise NotFound("Room not found")
    if room["admin_id"] != user_id:
        raise Forbidden("Only admin can remove members")
    if room["type"] == "dm":
        raise Forbidden("Cannot remove members from a direct message room")
    if member_id == user_id:
        raise BadRequest("Use leave to remove yourself from a room")
    if not await rooms_db.remove_member(pool, room_id, member_id):
        raise NotFound("User is not a member of this room")
    logger.info("User %s removed from room %s by %s", member_id, room_id, user_id)


async def transfer_admin(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int,
    new_admin_id: int,
) -> None:
    pool = pool_manager.pool
    room = await rooms_db.get_room(pool, room_id)
    if not room:
        raise NotFound("Room not found")
    if room["admin_id"] != user_id:
        raise Forbidden("Only admin can transfer admin role")
    if not await rooms_db.is_member(pool, room_id, new_admin_id):
        raise BadRequest("New admin must be a member of the room")

    await rooms_db.set_admin(pool, room_id, new_admin_id)
    logger.info("Room %s admin transferred from %s to %s", room_id, user_id, new_admin_id)
