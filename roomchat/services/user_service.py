"""Business logic: profiles, user search and presence."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from roomchat.db import rooms as rooms_db
from roomchat.db import users as users_db
from roomchat.errors import BadRequest, Forbidden, NotFound
from roomchat.models.user import User

if TYPE_CHECKING:
    from roomchat.db.pool_manager import PoolManager

logger = logging.getLogger("roomchat.users")

MIN_SEARCH_LENGTH = 2


async def get_profile(pool_manager: PoolManager, user_id: int) -> User:
    row = await users_db.get_user(pool_manager.pool, user_id)
    if not row:
        raise NotFound("User not found")
    return User.model_validate(row)


async def update_profile(
    pool_manager: PoolManager,
    user_id: int,
    name: str | None,
    avatar: str | None,
) -> User:
    if name is None and avatar is None:
        raise BadRequest("No fields to update")
    row = await users_db.update_profile(pool_manager.pool, user_id, name, avatar)
    if not row:
        raise NotFound("User not found")
    return User.model_validate(row)


async def search_users(
    pool_manager: PoolManager,
    user_id: int,
    query: str,
    limit: int = 20,
) -> list[User]:
    query = query.strip()
    if len(query) < MIN_SEARCH_LENGTH:
        raise BadRequest("Search query must be at least 2 characters")
    rows = await users_db.search_users(pool_manager.pool, user_id, query, limit)
    return [User.model_validate(r) for r in rows]


async def update_presence(pool_manager: PoolManager, user_id: int, status: str) -> str:
    online = status == "online"
    await users_db.set_presence(pool_manager.pool, user_id, online)
    return "online" if online else "offline"


async def heartbeat(pool_manager: PoolManager, user_id: int) -> None:
    await users_db.touch_last_seen(pool_manager.pool, user_id)


async def online_users(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int | None = None,
) -> list[User]:
    """Other users ordered online-first, then by most recent ``last_seen``."""
    pool = pool_manager.pool
    if room_id is not None and not await rooms_db.is_member(pool, room_id, user_id):
        raise Forbidden("Not a member of this room")
    rows = await users_db.list_presence(pool, user_id, room_id)
    return [User.model_validate(r) for r in rows]
