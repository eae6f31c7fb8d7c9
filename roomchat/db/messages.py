"""Queries against ``messages`` and ``files``."""

from __future__ import annotations

from roomchat.db.pool_manager import Executor, escape_like

SEARCH_LIMIT = 50

_MESSAGE_SELECT = """
    SELECT
        m.id,
        m.room_id,
        m.content,
        m.type,
        m.file_id,
        m.created_at,
        COALESCE(m.read_by, '{}') AS read_by,
        u.id AS user_id,
        u.name AS user_name,
        u.avatar AS user_avatar
    FROM messages m
    JOIN users u ON m.user_id = u.id
"""


async def get_room_messages(db: Executor, room_id: int) -> list[dict]:
    rows = await db.fetch(
        _MESSAGE_SELECT + "WHERE m.room_id = $1 ORDER BY m.created_at ASC, m.id ASC",
        room_id,
    )
    return [_row(r) for r in rows]


async def get_message(db: Executor, message_id: int) -> dict | None:
    row = await db.fetchrow(_MESSAGE_SELECT + "WHERE m.id = $1", message_id)
    return _row(row) if row else None


async def insert_message(
    db: Executor,
    room_id: int,
    user_id: int,
    content: str,
    message_type: str = "text",
    file_id: int | None = None,
) -> dict:
    """Insert a message and return it joined with its author."""
    message_id = await db.fetchval(
        """
        INSERT INTO messages (room_id, user_id, content, type, file_id, read_by, created_at)
        VALUES ($1, $2, $3, $4, $5, '{}', NOW())
        RETURNING id
        """,
        room_id,
        user_id,
        content,
        message_type,
        file_id,
    )
    await db.execute("UPDATE rooms SET updated_at = NOW() WHERE id = $1", room_id)
    return await get_message(db, message_id)


async def mark_read(db: Executor, user_id: int, message_ids: list[int]) -> int:
    """Append *user_id* to ``read_by`` once per message; returns rows touched."""
    rows = await db.fetch(
        """
        UPDATE messages
        SET read_by = array_append(COALESCE(read_by, '{}'), $1)
        WHERE id = ANY($2::int[]) AND NOT ($1 = ANY(COALESCE(read_by, '{}')))
        RETURNING id
        """,
        user_id,
        message_ids,
    )
    return len(rows)


async def delete_message(db: Executor, message_id: int) -> None:
    await db.execute("DELETE FROM messages WHERE id = $1", message_id)


async def search_messages(db: Executor, room_id: int, query: str) -> list[dict]:
    """Case-insensitive substring search over text messages, newest first."""
    rows = await db.fetch(
        _MESSAGE_SELECT
        + """
        WHERE m.room_id = $1
          AND m.type = 'text'
          AND m.content ILIKE '%' || $2 || '%'
        ORDER BY m.created_at DESC, m.id DESC
        LIMIT $3
        """,
        room_id,
        escape_like(query),
        SEARCH_LIMIT,
    )
    return [_row(r) for r in rows]


async def insert_file(
    db: Executor,
    name: str,
    file_type: str | None,
    size: int,
    url: str,
    user_id: int,
    room_id: int,
) -> dict:
    row = await db.fetchrow(
        """
        INSERT INTO files (name, type, size, url, uploaded_by, room_id, created_at)
        VALUES ($1, $2, $3, $4, $5, $6, NOW())
        RETURNING id, name, type, size, url
        """,
        name,
        file_type,
        size,
        url,
        user_id,
        room_id,
    )
    return dict(row)


def _row(row) -> dict:
    result = dict(row)
    result["read_by"] = list(result.get("read_by") or [])
    return result
