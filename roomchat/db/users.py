"""Queries against the ``users`` table."""

from __future__ import annotations

from roomchat.db.pool_manager import Executor, escape_like

_PUBLIC_COLUMNS = "id, email, name, avatar, online, last_seen, created_at"


async def get_user(db: Executor, user_id: int) -> dict | None:
    row = await db.fetchrow(
        f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE id = $1",
        user_id,
    )
    return dict(row) if row else None


async def get_user_with_password(db: Executor, email: str) -> dict | None:
    row = await db.fetchrow(
        f"SELECT {_PUBLIC_COLUMNS}, password FROM users WHERE email = $1",
        email,
    )
    return dict(row) if row else None


async def email_exists(db: Executor, email: str) -> bool:
    return await db.fetchval("SELECT EXISTS(SELECT 1 FROM users WHERE email = $1)", email)


async def insert_user(
    db: Executor,
    email: str,
    password_hash: str,
    name: str,
    avatar: str,
) -> dict:
    row = await db.fetchrow(
        f"""
        INSERT INTO users (email, password, name, avatar, online, last_seen, created_at)
        VALUES ($1, $2, $3, $4, true, NOW(), NOW())
        RETURNING {_PUBLIC_COLUMNS}
        """,
        email,
        password_hash,
        name,
        avatar,
    )
    return dict(row)


async def update_profile(
    db: Executor,
    user_id: int,
    name: str | None,
    avatar: str | None,
) -> dict | None:
    """Update only the provided fields; ``None`` keeps the stored value."""
    row = await db.fetchrow(
        f"""
        UPDATE users
        SET name = COALESCE($2, name),
            avatar = COALESCE($3, avatar),
            updated_at = NOW()
        WHERE id = $1
        RETURNING {_PUBLIC_COLUMNS}
        """,
        user_id,
        name,
        avatar,
    )
    return dict(row) if row else None


async def search_users(db: Executor, user_id: int, query: str, limit: int) -> list[dict]:
    pattern = f"%{escape_like(query)}%"
    rows = await db.fetch(
        """
        SELECT id, name, avatar, online, last_seen
        FROM users
        WHERE (name ILIKE $1 OR email ILIKE $1) AND id != $2
        ORDER BY CASE WHEN online THEN 0 ELSE 1 END, name ASC
        LIMIT $3
        """,
        pattern,
        user_id,
        limit,
    )
    return [dict(r) for r in rows]


async def set_presence(db: Executor, user_id: int, online: bool) -> None:
    await db.execute(
        "UPDATE users SET online = $2, last_seen = NOW() WHERE id = $1",
        user_id,
        online,
    )


async def touch_last_seen(db: Executor, user_id: int) -> None:
    await db.execute("UPDATE users SET last_seen = NOW() WHERE id = $1", user_id)


async def list_presence(db: Executor, user_id: int, room_id: int | None = None) -> list[dict]:
    """Other users, online first then most recently seen."""
    if room_id is not None:
        rows = await db.fetch(
            """
            SELECT DISTINCT u.id, u.name, u.avatar, u.online, u.last_seen
            FROM users u
            JOIN room_members rm ON u.id = rm.user_id
            WHERE rm.room_id = $1 AND u.id != $2
            ORDER BY u.online DESC, u.last_seen DESC NULLS LAST
            """,
            room_id,
            user_id,
        )
    else:
        rows = await db.fetch(
            """
            SELECT id, name, avatar, online, last_seen
            FROM users
            WHERE id != $1
            ORDER BY online DESC, last_seen DESC NULLS LAST
            """,
            user_id,
        )
    return [dict(r) for r in rows]
