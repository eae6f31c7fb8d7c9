"""Business logic: room listing, creation, DMs, join/leave and deletion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from roomchat.db import rooms as rooms_db
from roomchat.db import users as users_db
from roomchat.errors import BadRequest, Forbidden, NotFound
from roomchat.models.room import DMResponse, LeaveRoomResponse, Room, sort_by_activity

if TYPE_CHECKING:
    from roomchat.db.pool_manager import PoolManager

logger = logging.getLogger("roomchat.rooms")


@dataclass(frozen=True)
class Departure:
    """What happens to a room when a member leaves it."""

    delete_room: bool
    new_admin_id: int | None = None


def plan_departure(
    room_type: str,
    admin_id: int | None,
    leaver_id: int,
    member_ids: list[int],
) -> Departure:
    """Decide admin succession for *leaver_id* leaving a room.

    *member_ids* is ordered by join time. The room is deleted when nobody
    remains, and a DM is deleted as soon as either participant leaves since
    it must keep exactly two members. Otherwise a departing admin hands over
    to the earliest-joined remaining member.
    """
    remaining = [uid for uid in member_ids if uid != leaver_id]
    if not remaining or room_type == "dm":
        return Departure(delete_room=True)
    if admin_id == leaver_id or admin_id not in remaining:
        return Departure(delete_room=False, new_admin_id=remaining[0])
    return Departure(delete_room=False)


def can_delete_room(room_type: str, admin_id: int | None, user_id: int) -> bool:
    # Either DM participant may delete; group rooms only by their admin
    return room_type == "dm" or admin_id == user_id


async def list_rooms(pool_manager: PoolManager, user_id: int) -> list[Room]:
    rows = await rooms_db.list_user_rooms(pool_manager.pool, user_id)
    return sort_by_activity([Room.model_validate(r) for r in rows])


async def create_room(
    pool_manager: PoolManager,
    user_id: int,
    name: str,
    description: str | None,
    room_type: str = "group",
    member_ids: list[int] | None = None,
) -> Room:
    name = (name or "").strip()
    if not name:
        raise BadRequest("Room name is required")
    if room_type == "dm":
        raise BadRequest("Use /create-dm to start a direct message")

    async with pool_manager.pool.acquire() as conn:
        async with conn.transaction():
            row = await rooms_db.insert_room(conn, name, description, room_type, user_id)
            room_id = row["id"]
            await rooms_db.add_member(conn, room_id, user_id)
            for member_id in dict.fromkeys(member_ids or []):
                if member_id != user_id:
                    await rooms_db.add_member(conn, room_id, member_id)
            room = await rooms_db.get_room(conn, room_id)

    logger.info("Room %s created by %s", room_id, user_id)
    return Room.model_validate(room)


async def join_room(pool_manager: PoolManager, user_id: int, room_id: int | None) -> None:
    if not room_id:
        raise BadRequest("Room ID is required")
    pool = pool_manager.pool
    room = await rooms_db.get_room(pool, room_id)
    if not room:
        raise NotFound("Room not found")
    if room["type"] == "dm":
        raise Forbidden("Cannot join a direct message room")
    if await rooms_db.is_member(pool, room_id, user_id):
        raise BadRequest("Already a member of this room")
    await rooms_db.add_member(pool, room_id, user_id)


async def leave_room(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int | None,
) -> LeaveRoomResponse:
    if not room_id:
        raise BadRequest("Room ID is required")

    async with pool_manager.pool.acquire() as conn:
        async with conn.transaction():
            room = await rooms_db.get_room(conn, room_id)
            members = await rooms_db.member_ids(conn, room_id)
            if not room or user_id not in members:
                raise NotFound("Not a member of this room")

            plan = plan_departure(room["type"], room["admin_id"], user_id, members)
            if plan.delete_room:
                await rooms_db.delete_room(conn, room_id)
                logger.info("Room %s deleted after %s left", room_id, user_id)
                return LeaveRoomResponse(
                    deleted=True,
                    message="Room deleted as you were the last member",
                )

            if plan.new_admin_id is not None:
                await rooms_db.set_admin(conn, room_id, plan.new_admin_id)
                logger.info("Room %s admin passed to %s", room_id, plan.new_admin_id)
            await rooms_db.remove_member(conn, room_id, user_id)

    return LeaveRoomResponse(message="Successfully left room")


async def delete_room(pool_manager: PoolManager, user_id: int, room_id: int | None) -> None:
    if not room_id:
        raise BadRequest("Room ID is required")
    pool = pool_manager.pool
    room = await rooms_db.get_room(pool, room_id)
    if not room or not await rooms_db.is_member(pool, room_id, user_id):
        raise Forbidden("You are not a member of this room")
    if not can_delete_room(room["type"], room["admin_id"], user_id):
        raise Forbidden("Only the room admin can delete group rooms")
    await rooms_db.delete_room(pool, room_id)
    logger.info("Room %s deleted by %s", room_id, user_id)


async def create_dm(
    pool_manager: PoolManager,
    user_id: int,
    target_user_id: int | None,
) -> DMResponse:
    """Return the DM room shared with *target_user_id*, creating it if needed."""
    if not target_user_id:
        raise BadRequest("Target user ID is required")
    if target_user_id == user_id:
        raise BadRequest("Cannot create DM with yourself")

    async with pool_manager.pool.acquire() as conn:
        async with conn.transaction():
            await rooms_db.lock_user_pair(conn, user_id, target_user_id)
            existing = await rooms_db.find_dm(conn, user_id, target_user_id)
            if existing:
                room = await rooms_db.get_room(conn, existing["id"])
                return DMResponse(room=Room.model_validate(room), is_new=False)

            target = await users_db.get_user(conn, target_user_id)
            if not target:
                raise NotFound("Target user not found")

            row = await rooms_db.insert_room(
                conn,
                f"DM: {target['name']}",
                f"Direct message with {target['name']}",
                "dm",
                user_id,
            )
            await rooms_db.add_member(conn, row["id"], user_id)
            await rooms_db.add_member(conn, row["id"], target_user_id)
            room = await rooms_db.get_room(conn, row["id"])

    logger.info("DM room %s created for %s and %s", row["id"], user_id, target_user_id)
    return DMResponse(room=Room.model_validate(room), is_new=True)
