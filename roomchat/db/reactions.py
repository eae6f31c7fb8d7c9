"""Queries against ``message_reactions``."""

from __future__ import annotations

from roomchat.db.pool_manager import Executor

_REACTION_SELECT = """
    SELECT
        r.id,
        r.message_id,
        r.user_id,
        r.emoji,
        r.created_at,
        u.name AS user_name,
        u.avatar AS user_avatar
    FROM message_reactions r
    LEFT JOIN users u ON r.user_id = u.id
"""


async def get_message_reactions(db: Executor, message_id: int) -> list[dict]:
    rows = await db.fetch(
        _REACTION_SELECT + "WHERE r.message_id = $1 ORDER BY r.created_at ASC, r.id ASC",
        message_id,
    )
    return [dict(r) for r in rows]


async def get_reactions_for_messages(db: Executor, message_ids: list[int]) -> list[dict]:
    if not message_ids:
        return []
    rows = await db.fetch(
        _REACTION_SELECT + "WHERE r.message_id = ANY($1::int[]) ORDER BY r.created_at ASC, r.id ASC",
        message_ids,
    )
    return [dict(r) for r in rows]


async def get_room_reactions(db: Executor, room_id: int) -> list[dict]:
    rows = await db.fetch(
        _REACTION_SELECT
        + """
        JOIN messages m ON m.id = r.message_id
        WHERE m.room_id = $1
        ORDER BY r.created_at ASC, r.id ASC
        """,
        room_id,
    )
    return [dict(r) for r in rows]


async def insert_reaction(db: Executor, message_id: int, user_id: int, emoji: str) -> dict | None:
    """Insert a reaction row; ``None`` when the (message, user, emoji) row already exists."""
    row = await db.fetchrow(
        """
        INSERT INTO message_reactions (message_id, user_id, emoji, created_at)
        VALUES ($1, $2, $3, NOW())
        ON CONFLICT (message_id, user_id, emoji) DO NOTHING
        RETURNING id, message_id, user_id, emoji, created_at
        """,
        message_id,
        user_id,
        emoji,
    )
    return dict(row) if row else None


async def delete_reaction(db: Executor, message_id: int, user_id: int, emoji: str) -> dict | None:
    row = await db.fetchrow(
        """
        DELETE FROM message_reactions
        WHERE message_id = $1 AND user_id = $2 AND emoji = $3
        RETURNING id, message_id, user_id, emoji, created_at
        """,
        message_id,
        user_id,
        emoji,
    )
    return dict(row) if row else None
