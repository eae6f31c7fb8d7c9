from __future__ import annotations

import logging

from roomchat.client.base import Synchronizer
from roomchat.client.errors import ApiError
from roomchat.client.result import ActionResult
from roomchat.models.user import User

logger = logging.getLogger("roomchat.client.presence")

HEARTBEAT_TIMER = "presence.heartbeat"
STATUSES = ("online", "offline")


class PresenceTracker(Synchronizer):
    """Online status plus a last-seen heartbeat on its own timer."""

    async def update_presence(self, status: str) -> ActionResult:
        if status not in STATUSES:
            return self._invalid(f"Unknown status: {status}")
        try:
            data = await self.api.post("/presence", {"status": status})
        except ApiError as err:
            return self._failed("update presence", err)
        if self.state.user is not None:
            self.state.user = self.state.user.model_copy(update={"online": status == "online"})
        return ActionResult.ok(data.get("status", status))

    async def send_heartbeat(self) -> bool:
        try:
            await self.api.put("/presence")
        except ApiError as err:
            self._poll_failed("heartbeat", err)
            return False
        return True

    async def fetch_online_users(self, room_id: int | None = None) -> ActionResult:
        """Users ordered online first, then by last seen; scoped to a room when given."""
        try:
            data = await self.api.get("/presence", params={"roomId": room_id})
        except ApiError as err:
            self._poll_failed("presence", err)
            return ActionResult.fail(err.message)
        self.state.online_users = [User.model_validate(u) for u in data.get("users", [])]
        return ActionResult.ok(self.state.online_users)

    async def start(self) -> None:
        await self.update_presence("online")
        self.scheduler.every(HEARTBEAT_TIMER, self.config.heartbeat_interval, self.send_heartbeat)

    async def stop(self) -> None:
        self.scheduler.cancel(HEARTBEAT_TIMER)
        await self.update_presence("offline")
