from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from roomchat.client.base import Synchronizer
from roomchat.client.errors import ApiError
from roomchat.client.result import ActionResult
from roomchat.models.user import RoomMember, User

if TYPE_CHECKING:
    from roomchat.client.rooms import RoomSynchronizer

logger = logging.getLogger("roomchat.client.members")

MIN_QUERY_LENGTH = 2


class MemberDirectory(Synchronizer):
    """User search and room membership management."""

    def __init__(self, *args, rooms: RoomSynchronizer | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._rooms = rooms

    async def search_users(self, query: str, limit: int = 20) -> ActionResult:
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return ActionResult.ok([])
        try:
            data = await self.api.post("/users", {"query": query, "limit": limit})
        except ApiError as err:
            return self._failed("search users", err)
        return ActionResult.ok([User.model_validate(u) for u in data.get("users", [])])

    async def list_members(self, room_id: int) -> ActionResult:
        try:
            data = await self.api.get("/room-members", params={"roomId": room_id})
        except ApiError as err:
            return self._failed("list members", err)
        return ActionResult.ok([RoomMember.model_validate(m) for m in data.get("members", [])])

    async def add_member(self, room_id: int, user_id: int) -> ActionResult:
        try:
            data = await self.api.post("/room-members", {"roomId": room_id, "userId": user_id})
        except ApiError as err:
            return self._failed("add member", err)
        self._bump_member_count(room_id, 1)
        return ActionResult.ok(User.model_validate(data["user"]))

    async def remove_member(self, room_id: int, user_id: int) -> ActionResult:
        try:
            await self.api.delete("/room-members", params={"roomId": room_id, "userId": user_id})
        except ApiError as err:
            return self._failed("remove member", err)
        self._bump_member_count(room_id, -1)
        return ActionResult.ok(user_id)

    async def transfer_admin_role(self, room_id: int, new_admin_id: int) -> ActionResult:
        try:
            await self.api.post(
                "/room-members/transfer-admin", {"roomId": room_id, "newAdminId": new_admin_id}
            )
        except ApiError as err:
            return self._failed("transfer admin role", err)
        if self._rooms is not None:
            await self._rooms.fetch_rooms()
        self.notifier.info("Admin role transferred")
        return ActionResult.ok(new_admin_id)

    def _bump_member_count(self, room_id: int, delta: int) -> None:
        self.state.rooms = [
            r.model_copy(update={"member_count": max(r.member_count + delta, 0)}) if r.id == room_id else r
            for r in self.state.rooms
        ]
