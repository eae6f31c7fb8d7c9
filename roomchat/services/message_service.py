"""Business logic: messages, read markers, search, forwarding and file uploads."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import TYPE_CHECKING

from roomchat.db import messages as messages_db
from roomchat.db import reactions as reactions_db
from roomchat.db import rooms as rooms_db
from roomchat.errors import BadRequest, Forbidden, NotFound
from roomchat.models.message import FileDescriptor, Message
from roomchat.services.reaction_service import group_by_message

if TYPE_CHECKING:
    from roomchat.db.pool_manager import PoolManager

logger = logging.getLogger("roomchat.messages")

MAX_FILE_BYTES = 10 * 1024 * 1024


def forwarded_content(author_name: str | None, content: str) -> str:
    return f"Forwarded from {author_name or 'Unknown'}:\n{content}"


def decode_file_data(file_data: str, max_bytes: int = MAX_FILE_BYTES) -> bytes:
    """Decode base64 upload data, enforcing the size cap."""
    if file_data.startswith("data:") and "," in file_data:
        file_data = file_data.split(",", 1)[1]
    try:
        raw = base64.b64decode(file_data, validate=True)
    except (binascii.Error, ValueError) as err:
        raise BadRequest("File data is not valid base64") from err
    if len(raw) > max_bytes:
        raise BadRequest(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit")
    return raw


async def get_messages(pool_manager: PoolManager, user_id: int, room_id: int | None) -> list[Message]:
    """All messages of a room, oldest first, each with its grouped reactions."""
    if not room_id:
        raise BadRequest("Room ID is required")
    pool = pool_manager.pool
    await _require_member(pool_manager, room_id, user_id)

    rows = await messages_db.get_room_messages(pool, room_id)
    reaction_rows = await reactions_db.get_reactions_for_messages(pool, [r["id"] for r in rows])
    reactions_map = group_by_message(reaction_rows)
    return [
        Message.model_validate({**r, "reactions": reactions_map.get(r["id"], [])})
        for r in rows
    ]


async def send_message(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int | None,
    content: str,
    message_type: str = "text",
) -> Message:
    if not room_id or not content:
        raise BadRequest("Room ID and content are required")
    await _require_member(pool_manager, room_id, user_id)
    row = await messages_db.insert_message(pool_manager.pool, room_id, user_id, content, message_type)
    return Message.model_validate(row)


async def mark_messages_read(
    pool_manager: PoolManager,
    user_id: int,
    message_ids: list[int] | None,
) -> int:
    if message_ids is None:
        raise BadRequest("Message IDs array is required")
    if not message_ids:
        return 0
    return await messages_db.mark_read(pool_manager.pool, user_id, message_ids)


async def delete_message(pool_manager: PoolManager, user_id: int, message_id: int | None) -> None:
    if not message_id:
        raise BadRequest("Message ID is required")
    pool = pool_manager.pool
    message = await messages_db.get_message(pool, message_id)
    if not message:
        raise NotFound("Message not found")
    if message["user_id"] != user_id:
        raise Forbidden("Only the author can delete this message")
    await messages_db.delete_message(pool, message_id)
    logger.info("Message %s deleted by %s", message_id, user_id)


async def search_messages(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int | None,
    query: str | None,
) -> list[Message]:
    if not room_id or not query:
        raise BadRequest("Room ID and search query are required")
    await _require_member(pool_manager, room_id, user_id)
    rows = await messages_db.search_messages(pool_manager.pool, room_id, query)
    return [Message.model_validate(r) for r in rows]


async def forward_message(
    pool_manager: PoolManager,
    user_id: int,
    message_id: int | None,
    target_room_id: int | None,
) -> Message:
    if not message_id or not target_room_id:
        raise BadRequest("Message ID and target room ID are required")
    pool = pool_manager.pool
    original = await messages_db.get_message(pool, message_id)
    if not original:
        raise NotFound("Message not found")
    if not await rooms_db.is_member(pool, original["room_id"], user_id):
        raise Forbidden("Access denied to original message")
    if not await rooms_db.is_member(pool, target_room_id, user_id):
        raise Forbidden("Access denied to target room")

    content = forwarded_content(original["user_name"], original["content"])
    row = await messages_db.insert_message(pool, target_room_id, user_id, content, "text")
    logger.info("Message %s forwarded to room %s by %s", message_id, target_room_id, user_id)
    return Message.model_validate(row)


async def mark_room_read(pool_manager: PoolManager, user_id: int, room_id: int | None) -> None:
    if not room_id:
        raise BadRequest("Room ID is required")
    pool = pool_manager.pool
    if not await rooms_db.is_member(pool, room_id, user_id):
        raise Forbidden("You are not a member of this room")
    await rooms_db.mark_room_read(pool, room_id, user_id)


async def upload_file(
    pool_manager: PoolManager,
    user_id: int,
    room_id: int | None,
    file_name: str | None,
    file_type: str | None,
    file_data: str | None,
    max_bytes: int = MAX_FILE_BYTES,
) -> Message:
    """Store a base64 upload inline as a data URL and post it as a ``file`` message."""
    if not file_data or not file_name or not room_id:
        raise BadRequest("Missing file data, filename, or room ID")
    raw = decode_file_data(file_data, max_bytes)
    await _require_member(pool_manager, room_id, user_id)

    file_type = file_type or "application/octet-stream"
    url = f"data:{file_type};base64,{base64.b64encode(raw).decode('ascii')}"

    async with pool_manager.pool.acquire() as conn:
        async with conn.transaction():
            stored = await messages_db.insert_file(conn, file_name, file_type, len(raw), url, user_id, room_id)
            descriptor = FileDescriptor.model_validate(stored)
            content = json.dumps({"file": descriptor.model_dump()})
            row = await messages_db.insert_message(conn, room_id, user_id, content, "file", stored["id"])

    logger.info("File %s (%d bytes) uploaded to room %s", stored["id"], len(raw), room_id)
    return Message.model_validate(row)


async def _require_member(pool_manager: PoolManager, room_id: int, user_id: int) -> None:
    if not await rooms_db.is_member(pool_manager.pool, room_id, user_id):
        raise Forbidden("Access denied to this room")
