"""Room list synchronization."""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from roomchat.client.base import Synchronizer
from roomchat.client.errors import ApiError
from roomchat.client.reconcile import reconcile_rooms
from roomchat.client.result import ActionResult
from roomchat.models.room import Room, sort_by_activity

logger = logging.getLogger("roomchat.client.rooms")

POLL_TIMER = "rooms.poll"

RoomChanged = Callable[["int | None"], Awaitable[object]]


class RoomSynchronizer(Synchronizer):
    """Keeps ``state.rooms`` in line with ``GET /rooms``.

    ``on_room_changed`` is awaited whenever an action here switches or
    clears the active room, so the owner can rebind message polling.
    """

    def __init__(self, *args, on_room_changed: RoomChanged | None = None, clock=time.monotonic, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._on_room_changed = on_room_changed
        self._clock = clock
        self._in_flight = False
        self._last_fetch: float | None = None

    async def fetch_rooms(self) -> ActionResult:
        """Replace the room list with the server's; keeps the old list on failure."""
        if self._in_flight:
            return ActionResult.ok(self.state.rooms)
        self._in_flight = True
        self.state.rooms_loading = True
        self._last_fetch = self._clock()
        try:
            data = await self.api.get("/rooms")
        except ApiError as err:
            self._poll_failed("rooms", err)
            return ActionResult.fail(err.message)
        finally:
            self._in_flight = False
            self.state.rooms_loading = False

        snapshot = [Room.model_validate(r) for r in data.get("rooms", [])]
        self.state.rooms = reconcile_rooms(self.state.rooms, snapshot)
        return ActionResult.ok(self.state.rooms)

    async def poll_rooms(self) -> None:
        """Timer entry point; skipped while the last fetch is younger than the debounce floor."""
        if self._last_fetch is not None:
            if self._clock() - self._last_fetch < self.config.room_fetch_min_interval:
                logger.debug("Room poll debounced")
                return
        await self.fetch_rooms()

    def start_polling(self) -> None:
        self.scheduler.every(POLL_TIMER, self.config.room_poll_interval, self.poll_rooms)

    def stop_polling(self) -> None:
        self.scheduler.cancel(POLL_TIMER)

    async def create_room(
        self,
        name: str,
        description: str | None = None,
        member_ids: list[int] | None = None,
    ) -> ActionResult:
        if not name or not name.strip():
            return self._invalid("Room name is required")
        body = {
            "name": name.strip(),
            "description": description,
            "type": "group",
            "memberIds": member_ids or [],
        }
        try:
            data = await self.api.post("/rooms", body)
        except ApiError as err:
            return self._failed("create room", err)

        room = Room.model_validate(data["room"])
        # Full refetch so member counts and ordering come from the server
        await self.fetch_rooms()
        if self.state.room(room.id) is None:
            self.state.rooms = sort_by_activity([room, *self.state.rooms])
        return ActionResult.ok(room)

    async def create_dm(self, target_user_id: int) -> ActionResult:
        try:
            data = await self.api.post("/create-dm", {"targetUserId": target_user_id})
        except ApiError as err:
            return self._failed("create DM", err)

        room = Room.model_validate(data["room"])
        if data.get("is_new") and self.state.room(room.id) is None:
            self.state.rooms = sort_by_activity([room, *self.state.rooms])
        else:
            await self.fetch_rooms()
            if self.state.room(room.id) is None:
                self.state.rooms = sort_by_activity([room, *self.state.rooms])
        await self._switch_to(room.id)
        return ActionResult.ok(room)

    async def join_room(self, room_id: int) -> ActionResult:
        try:
            await self.api.put("/rooms", {"roomId": room_id})
        except ApiError as err:
            return self._failed("join room", err)
        await self.fetch_rooms()
        return ActionResult.ok(self.state.room(room_id))

    async def leave_room(self, room_id: int) -> ActionResult:
        try:
            data = await self.api.delete("/rooms", json={"roomId": room_id})
        except ApiError as err:
            return self._failed("leave room", err)
        await self._forget(room_id)
        if data.get("deleted"):
            logger.info("Room %s deleted after its last member left", room_id)
        return ActionResult.ok(data)

    async def delete_room(self, room_id: int) -> ActionResult:
        try:
            data = await self.api.delete("/delete-room", json={"roomId": room_id})
        except ApiError as err:
            return self._failed("delete room", err)
        await self._forget(room_id)
        return ActionResult.ok(data)

    async def _forget(self, room_id: int) -> None:
        self.state.rooms = [r for r in self.state.rooms if r.id != room_id]
        if self.state.current_room_id == room_id:
            await self._switch_to(None)

    async def _switch_to(self, room_id: int | None) -> None:
        if self._on_room_changed is not None:
            await self._on_room_changed(room_id)
        elif room_id is None:
            self.state.clear_active_room()
        else:
            self.state.current_room_id = room_id
