"""Business logic: emoji reactions grouped per message."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from roomchat.db import messages as messages_db
from roomchat.db import reactions as reactions_db
from roomchat.db import rooms as rooms_db
from roomchat.errors import BadRequest, Forbidden, NotFound
from roomchat.models.message import ReactionAggregate, ReactionUser

if TYPE_CHECKING:
    from roomchat.db.pool_manager import PoolManager

logger = logging.getLogger("roomchat.reactions")


def group_reactions(rows: Iterable[dict]) -> list[ReactionAggregate]:
    """Group reaction rows by emoji, keeping first-reaction order."""
    grouped: dict[str, ReactionAggregate] = {}
    for row in rows:
        agg = grouped.get(row["emoji"])
        if agg is None:
            agg = grouped[row["emoji"]] = ReactionAggregate(emoji=row["emoji"])
        agg.count += 1
        agg.users.append(ReactionUser(
            id=row["user_id"],
            name=row.get("user_name"),
            avatar=row.get("user_avatar"),
            timestamp=row.get("created_at"),
        ))
    return list(grouped.values())


def group_by_message(rows: Iterable[dict]) -> dict[int, list[ReactionAggregate]]:
    per_message: dict[int, list[dict]] = {}
    for row in rows:
        per_message.setdefault(row["message_id"], []).append(row)
    return {mid: group_reactions(items) for mid, items in per_message.items()}


async def list_reactions(
    pool_manager: PoolManager,
    user_id: int,
    message_id: int,
) -> tuple[list[ReactionAggregate], int]:
    pool = pool_manager.pool
    await _require_message_access(pool_manager, user_id, message_id)
    rows = await reactions_db.get_message_reactions(pool, message_id)
    return group_reactions(rows), len(rows)


async def list_room_reactions(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int,
) -> dict[int, list[ReactionAggregate]]:
    pool = pool_manager.pool
    if not await rooms_db.is_member(pool, room_id, user_id):
        raise Forbidden("Access denied to this room")
    rows = await reactions_db.get_room_reactions(pool, room_id)
    return group_by_message(rows)


async def add_reaction(
    pool_manager: PoolManager,
    user_id: int,
    message_id: int | None,
    emoji: str | None,
) -> dict | None:
    """Add a reaction; ``None`` means the same reaction already existed."""
    if not message_id or not emoji:
        raise BadRequest("Message ID and emoji are required")
    await _require_message_access(pool_manager, user_id, message_id)
    row = await reactions_db.insert_reaction(pool_manager.pool, message_id, user_id, emoji)
    if row:
        logger.debug("Reaction %s added to message %s by %s", emoji, message_id, user_id)
    return row


async def remove_reaction(
    pool_manager: PoolManager,
    user_id: int,
    message_id: int | None,
    emoji: str | None,
) -> dict:
    if not message_id or not emoji:
        raise BadRequest("Message ID and emoji are required")
    row = await reactions_db.delete_reaction(pool_manager.pool, message_id, user_id, emoji)
    if not row:
        raise NotFound("Reaction not found")
    return row


async def _require_message_access(pool_manager: PoolManager, user_id: int, message_id: int) -> None:
    pool = pool_manager.pool
    message = await messages_db.get_message(pool, message_id)
    if not message:
        raise NotFound("Message not found")
    if not await rooms_db.is_member(pool, message["room_id"], user_id):
        raise Forbidden("Access denied to this room")
