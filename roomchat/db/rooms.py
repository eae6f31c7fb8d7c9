"""Queries against ``rooms`` and ``room_members``."""

from __future__ import annotations

from roomchat.db.pool_manager import Executor

_ROOM_COLUMNS = "id, name, description, type, admin_id, created_by, created_at, updated_at"


async def list_user_rooms(db: Executor, user_id: int) -> list[dict]:
    """Rooms *user_id* belongs to, with member count, last activity and unread count.

    Unread = messages from other users newer than the member's ``last_read_at``.
    """
    rows = await db.fetch(
        """
        SELECT
            r.id,
            r.name,
            r.description,
            r.type,
            COALESCE(r.admin_id, r.created_by) AS admin_id,
            r.created_by,
            r.created_at,
            r.updated_at,
            (SELECT COUNT(*) FROM room_members rm2 WHERE rm2.room_id = r.id) AS member_count,
            (SELECT MAX(m.created_at) FROM messages m WHERE m.room_id = r.id) AS last_message_at,
            (SELECT COUNT(*) FROM messages m
              WHERE m.room_id = r.id
                AND m.user_id != $1
                AND m.created_at > COALESCE(me.last_read_at, me.joined_at)) AS unread_count
        FROM rooms r
        JOIN room_members me ON me.room_id = r.id AND me.user_id = $1
        ORDER BY COALESCE(
            (SELECT MAX(m.created_at) FROM messages m WHERE m.room_id = r.id),
            r.updated_at,
            r.created_at
        ) DESC
        """,
        user_id,
    )
    return [dict(r) for r in rows]


async def get_room(db: Executor, room_id: int) -> dict | None:
    row = await db.fetchrow(
        """
        SELECT id, name, description, type,
               COALESCE(admin_id, created_by) AS admin_id,
               created_by, created_at, updated_at,
               (SELECT COUNT(*) FROM room_members rm WHERE rm.room_id = rooms.id) AS member_count
        FROM rooms
        WHERE id = $1
        """,
        room_id,
    )
    return dict(row) if row else None


async def insert_room(
    db: Executor,
    name: str,
    description: str | None,
    room_type: str,
    creator_id: int,
) -> dict:
    row = await db.fetchrow(
        f"""
        INSERT INTO rooms (name, description, type, created_by, admin_id, created_at, updated_at)
        VALUES ($1, $2, $3, $4, $4, NOW(), NOW())
        RETURNING {_ROOM_COLUMNS}
        """,
        name,
        description,
        room_type,
        creator_id,
    )
    return dict(row)


async def delete_room(db: Executor, room_id: int) -> None:
    # messages, reactions, files and memberships cascade on delete
    await db.execute("DELETE FROM rooms WHERE id = $1", room_id)


async def set_admin(db: Executor, room_id: int, user_id: int) -> None:
    await db.execute(
        "UPDATE rooms SET admin_id = $2, updated_at = NOW() WHERE id = $1",
        room_id,
        user_id,
    )


async def is_member(db: Executor, room_id: int, user_id: int) -> bool:
    return await db.fetchval(
        "SELECT EXISTS(SELECT 1 FROM room_members WHERE room_id = $1 AND user_id = $2)",
        room_id,
        user_id,
    )


async def add_member(db: Executor, room_id: int, user_id: int) -> None:
    await db.execute(
        """
        INSERT INTO room_members (room_id, user_id, joined_at, last_read_at)
        VALUES ($1, $2, NOW(), NOW())
        ON CONFLICT (room_id, user_id) DO NOTHING
        """,
        room_id,
        user_id,
    )


async def remove_member(db: Executor, room_id: int, user_id: int) -> bool:
    status = await db.execute(
        "DELETE FROM room_members WHERE room_id = $1 AND user_id = $2",
        room_id,
        user_id,
    )
    return status != "DELETE 0"


async def member_ids(db: Executor, room_id: int) -> list[int]:
    """Member user ids, earliest joiner first."""
    rows = await db.fetch(
        "SELECT user_id FROM room_members WHERE room_id = $1 ORDER BY joined_at ASC, user_id ASC",
        room_id,
    )
    return [r["user_id"] for r in rows]


async def list_members(db: Executor, room_id: int) -> list[dict]:
    rows = await db.fetch(
        """
        SELECT u.id, u.name, u.avatar, u.online, u.last_seen, rm.joined_at
        FROM room_members rm
        JOIN users u ON rm.user_id = u.id
        WHERE rm.room_id = $1
        ORDER BY rm.joined_at ASC
        """,
        room_id,
    )
    return [dict(r) for r in rows]


async def mark_room_read(db: Executor, room_id: int, user_id: int) -> None:
    await db.execute(
        "UPDATE room_members SET last_read_at = NOW() WHERE room_id = $1 AND user_id = $2",
        room_id,
        user_id,
    )


async def lock_user_pair(db: Executor, user_a: int, user_b: int) -> None:
    """Serialize DM creation for an unordered user pair (transaction-scoped)."""
    low, high = sorted((user_a, user_b))
    await db.execute("SELECT pg_advisory_xact_lock($1, $2)", low, high)


async def find_dm(db: Executor, user_a: int, user_b: int) -> dict | None:
    """The two-member DM room shared by *user_a* and *user_b*, if any."""
    row = await db.fetchrow(
        f"""
        SELECT {_ROOM_COLUMNS}
        FROM rooms r
        WHERE r.type = 'dm'
          AND EXISTS (SELECT 1 FROM room_members WHERE room_id = r.id AND user_id = $1)
          AND EXISTS (SELECT 1 FROM room_members WHERE room_id = r.id AND user_id = $2)
          AND (SELECT COUNT(*) FROM room_members WHERE room_id = r.id) = 2
        ORDER BY r.id
        LIMIT 1
        """,
        user_a,
        user_b,
    )
    return dict(row) if row else None
