"""Reaction synchronization.

Local reaction aggregates are a rendering hint. After every acknowledged
add or remove the room's reactions are re-read from the server once the
reconcile delay has passed, and a slower periodic poll catches reactions
made by other members. Staleness is therefore bounded by the reconcile
delay for our own changes and by the poll interval for everyone else's.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from roomchat.client.base import Synchronizer
from roomchat.client.errors import ApiError, NotFound
from roomchat.client.reconcile import apply_reaction_delta, has_reacted, reconcile_reactions
from roomchat.client.result import ActionResult
from roomchat.models.message import ReactionAggregate, ReactionUser

logger = logging.getLogger("roomchat.client.reactions")

POLL_TIMER = "reactions.poll"
RECONCILE_TIMER = "reactions.reconcile"


class ReactionSynchronizer(Synchronizer):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._refreshing = False
        self._pending_room: int | None = None

    async def toggle_reaction(self, message_id: int, emoji: str) -> ActionResult:
        user = self.state.user
        if user is None:
            return self._invalid("Not authenticated")
        message = self.state.message(message_id)
        if message is not None and has_reacted(message, emoji, user.id):
            return await self.remove_reaction(message_id, emoji)
        return await self.add_reaction(message_id, emoji)

    async def add_reaction(self, message_id: int, emoji: str) -> ActionResult:
        if not emoji:
            return self._invalid("Emoji is required")
        try:
            data = await self.api.post("/reactions", {"messageId": message_id, "emoji": emoji})
        except ApiError as err:
            return self._failed("add reaction", err)
        # "already_exists" still means our reaction is there
        self._apply(message_id, emoji, added=True)
        self._schedule_reconcile()
        return ActionResult.ok(data.get("action", "added"))

    async def remove_reaction(self, message_id: int, emoji: str) -> ActionResult:
        if not emoji:
            return self._invalid("Emoji is required")
        action = "removed"
        try:
            await self.api.delete("/reactions", params={"messageId": message_id, "emoji": emoji})
        except NotFound:
            # already gone on the server, which is what we wanted
            action = "not_found"
        except ApiError as err:
            return self._failed("remove reaction", err)
        self._apply(message_id, emoji, added=False)
        self._schedule_reconcile()
        return ActionResult.ok(action)

    async def refresh_reactions(self, room_id: int | None = None) -> ActionResult:
        """Overwrite local aggregates with the server's for the whole room."""
        room_id = room_id or self.state.current_room_id
        if room_id is None:
            return ActionResult.ok()
        if self._refreshing:
            # the in-flight snapshot may predate our change, so read again after it
            self._pending_room = room_id
            return ActionResult.ok()
        self._refreshing = True
        try:
            result = await self._refresh(room_id)
        finally:
            self._refreshing = False
        pending, self._pending_room = self._pending_room, None
        if pending is not None:
            return await self.refresh_reactions(pending)
        return result

    async def _refresh(self, room_id: int) -> ActionResult:
        try:
            data = await self.api.get("/reactions", params={"roomId": room_id})
        except ApiError as err:
            self._poll_failed("reactions", err)
            return ActionResult.fail(err.message)

        if self.state.current_room_id != room_id:
            return ActionResult.ok()
        snapshot = {
            int(message_id): [ReactionAggregate.model_validate(a) for a in aggregates]
            for message_id, aggregates in data.get("reactions", {}).items()
        }
        self.state.messages = reconcile_reactions(self.state.messages, snapshot)
        return ActionResult.ok(snapshot)

    def start_polling(self, room_id: int) -> None:
        self.scheduler.every(
            POLL_TIMER,
            self.config.reaction_poll_interval,
            lambda: self.refresh_reactions(room_id),
        )

    def stop_polling(self) -> None:
        self.scheduler.cancel(POLL_TIMER)
        self.scheduler.cancel(RECONCILE_TIMER)
        self._pending_room = None

    def _apply(self, message_id: int, emoji: str, added: bool) -> None:
        user = self.state.user
        if user is None:
            return
        reactor = ReactionUser(
            id=user.id,
            name=user.name,
            avatar=user.avatar,
            timestamp=datetime.now(timezone.utc),
        )
        self.state.messages = apply_reaction_delta(self.state.messages, message_id, emoji, reactor, added)

    def _schedule_reconcile(self) -> None:
        room_id = self.state.current_room_id
        if room_id is None:
            return
        # re-registering replaces a pending reconcile, so bursts collapse into one
        self.scheduler.call_later(
            RECONCILE_TIMER,
            self.config.reaction_reconcile_delay,
            lambda: self.refresh_reactions(room_id),
        )
