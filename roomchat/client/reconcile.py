"""Merge functions, one per entity type: current cache + server snapshot -> merged."""

from __future__ import annotations

from typing import Iterable, Mapping, TypeVar

from roomchat.models.message import Message, ReactionAggregate, ReactionUser
from roomchat.models.room import Room, sort_by_activity

T = TypeVar("T", Room, Message)


def dedupe_by_id(items: Iterable[T]) -> list[T]:
    """Drop repeated identifiers; the first occurrence wins."""
    seen: set[int] = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def reconcile_rooms(current: list[Room], snapshot: list[Room]) -> list[Room]:
    """The snapshot replaces the cache, ordered by activity.

    Rooms with equal activity keep their previous relative order so that
    repeated fetches of an unchanged list yield the same ordering.
    """
    previous = {room.id: pos for pos, room in enumerate(current)}
    rooms = dedupe_by_id(snapshot)
    rooms.sort(key=lambda r: previous.get(r.id, len(previous)))
    return sort_by_activity(rooms)


def reconcile_messages(
    current: list[Message],
    snapshot: list[Message],
    replace: bool = False,
) -> tuple[list[Message], list[Message]]:
    """Return ``(merged, added)``.

    ``replace`` swaps the whole list for the snapshot; otherwise only
    identifiers not already cached are appended.
    """
    incoming = dedupe_by_id(snapshot)
    if replace:
        return incoming, incoming
    known = {m.id for m in current}
    added = [m for m in incoming if m.id not in known]
    return current + added, added


def reconcile_reactions(
    messages: list[Message],
    snapshot: Mapping[int, list[ReactionAggregate]],
) -> list[Message]:
    """Overwrite every message's reactions with the server's; absent means none."""
    merged = []
    for message in messages:
        reactions = list(snapshot.get(message.id, []))
        if reactions != message.reactions:
            message = message.model_copy(update={"reactions": reactions})
        merged.append(message)
    return merged


def apply_reaction_delta(
    messages: list[Message],
    message_id: int,
    emoji: str,
    user: ReactionUser,
    added: bool,
) -> list[Message]:
    """Locally add or remove ``user``'s ``emoji`` on one message.

    Only a rendering hint: the next reconciliation overwrites it.
    """
    merged = []
    for message in messages:
        if message.id == message_id:
            reactions = _apply(message.reactions, emoji, user, added)
            message = message.model_copy(update={"reactions": reactions})
        merged.append(message)
    return merged


def _apply(
    reactions: list[ReactionAggregate],
    emoji: str,
    user: ReactionUser,
    added: bool,
) -> list[ReactionAggregate]:
    result = []
    found = False
    for agg in reactions:
        if agg.emoji != emoji:
            result.append(agg)
            continue
        found = True
        others = [u for u in agg.users if u.id != user.id]
        users = others + [user] if added else others
        if users:
            result.append(ReactionAggregate(emoji=emoji, count=len(users), users=users))
    if added and not found:
        result.append(ReactionAggregate(emoji=emoji, count=1, users=[user]))
    return result


def has_reacted(message: Message, emoji: str, user_id: int) -> bool:
    return any(
        agg.emoji == emoji and any(u.id == user_id for u in agg.users)
        for agg in message.reactions
    )


def apply_unread_counts(
    rooms: list[Room],
    increments: Mapping[int, int],
    exclude_room_id: int | None = None,
) -> list[Room]:
    """Bump unread counters locally; the excluded (active) room is left alone."""
    merged = []
    for room in rooms:
        extra = increments.get(room.id, 0)
        if extra and room.id != exclude_room_id:
            room = room.model_copy(update={"unread_count": room.unread_count + extra})
        merged.append(room)
    return merged


def zero_unread(rooms: list[Room], room_id: int) -> list[Room]:
    return [
        r.model_copy(update={"unread_count": 0}) if r.id == room_id and r.unread_count else r
        for r in rooms
    ]
