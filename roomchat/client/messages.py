"""Message synchronization for the active room."""

from __future__ import annotations

import base64
import logging
import mimetypes
from collections import Counter

from roomchat.client.base import Synchronizer
from roomchat.client.errors import ApiError
from roomchat.client.reconcile import apply_unread_counts, reconcile_messages, zero_unread
from roomchat.client.result import ActionResult
from roomchat.models.message import Message, MessageType
from roomchat.models.room import sort_by_activity

logger = logging.getLogger("roomchat.client.messages")

POLL_TIMER = "messages.poll"


class MessageSynchronizer(Synchronizer):
    """Loads, polls and mutates the message list of the active room.

    ``state.message_status`` moves ``idle -> loading -> ready`` and goes
    back to ``loading`` on every room switch. Only ``ready`` owns a poll
    timer, and that timer is bound to the room it was started for.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._polling = False

    async def select_room(self, room_id: int | None) -> ActionResult:
        self.scheduler.cancel(POLL_TIMER)
        if room_id is None:
            self.state.clear_active_room()
            return ActionResult.ok()

        self.state.current_room_id = room_id
        self.state.messages = []
        self.state.search_results = []
        self.state.message_status = "loading"

        result = await self.fetch_messages(room_id)
        if self.state.current_room_id != room_id:
            # switched again while loading; the newer selection owns the state
            return result
        if not result.success:
            self.state.message_status = "idle"
            return result

        self.state.message_status = "ready"
        self.scheduler.every(
            POLL_TIMER,
            self.config.message_poll_interval,
            lambda: self.poll_for_new_messages(room_id),
        )
        room = self.state.room(room_id)
        if room is not None and room.unread_count:
            await self.mark_room_as_read(room_id)
        return result

    async def fetch_messages(self, room_id: int) -> ActionResult:
        """Replace the local list with the server's, deduplicated by id."""
        self.state.messages_loading = True
        try:
            data = await self.api.get("/messages", params={"roomId": room_id})
        except ApiError as err:
            return self._failed("fetch messages", err)
        finally:
            self.state.messages_loading = False

        snapshot = [Message.model_validate(m) for m in data.get("messages", [])]
        if self.state.current_room_id != room_id:
            logger.debug("Discarding messages for room %s, no longer active", room_id)
            return ActionResult.ok(snapshot)
        self.state.messages, _ = reconcile_messages(self.state.messages, snapshot, replace=True)
        return ActionResult.ok(self.state.messages)

    async def poll_for_new_messages(self, room_id: int) -> list[Message]:
        """Append messages the cache has not seen yet; returns the ones appended."""
        if self._polling or self.state.current_room_id != room_id:
            return []
        self._polling = True
        try:
            data = await self.api.get("/messages", params={"roomId": room_id})
        except ApiError as err:
            self._poll_failed("messages", err)
            return []
        finally:
            self._polling = False

        if self.state.current_room_id != room_id:
            return []
        snapshot = [Message.model_validate(m) for m in data.get("messages", [])]
        self.state.messages, added = reconcile_messages(self.state.messages, snapshot)
        if added:
            self._note_activity(added)
        return added

    async def send_message(self, content: str, message_type: MessageType = "text") -> ActionResult:
        room_id = self.state.current_room_id
        if room_id is None:
            return self._invalid("No room selected")
        if not content or not content.strip():
            return self._invalid("Message cannot be empty")
        try:
            data = await self.api.post(
                "/messages", {"roomId": room_id, "content": content, "type": message_type}
            )
        except ApiError as err:
            return self._failed("send message", err)
        message = Message.model_validate(data["message"])
        self._append(room_id, message)
        return ActionResult.ok(message)

    async def send_file(self, name: str, payload: bytes, mime_type: str | None = None) -> ActionResult:
        room_id = self.state.current_room_id
        if room_id is None:
            return self._invalid("No room selected")
        if not payload:
            return self._invalid("File is empty")
        if len(payload) > self.config.max_file_bytes:
            limit_mb = self.config.max_file_bytes // (1024 * 1024)
            return self._invalid(f"File is too large (max {limit_mb} MB)")

        mime_type = mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        body = {
            "roomId": room_id,
            "fileName": name,
            "fileType": mime_type,
            "fileData": base64.b64encode(payload).decode("ascii"),
        }
        try:
            data = await self.api.post("/upload-file", body)
        except ApiError as err:
            return self._failed("upload file", err)
        message = Message.model_validate(data["message"])
        self._append(room_id, message)
        return ActionResult.ok(message)

    async def delete_message(self, message_id: int) -> ActionResult:
        try:
            await self.api.delete("/messages", params={"messageId": message_id})
        except ApiError as err:
            return self._failed("delete message", err)
        self.state.messages = [m for m in self.state.messages if m.id != message_id]
        return ActionResult.ok(message_id)

    async def mark_messages_as_read(self, message_ids: list[int]) -> ActionResult:
        if not message_ids:
            return ActionResult.ok(0)
        try:
            data = await self.api.put("/messages", {"messageIds": message_ids})
        except ApiError as err:
            self._poll_failed("read receipts", err)
            return ActionResult.fail(err.message)
        return ActionResult.ok(data.get("updated_count", 0))

    async def mark_room_as_read(self, room_id: int) -> ActionResult:
        self.state.rooms = zero_unread(self.state.rooms, room_id)
        try:
            await self.api.post("/mark-read", {"roomId": room_id})
        except ApiError as err:
            self._poll_failed("read marker", err)
            return ActionResult.fail(err.message)
        return ActionResult.ok(room_id)

    async def forward_message(self, message_id: int, target_room_id: int) -> ActionResult:
        try:
            data = await self.api.post(
                "/messages-forward", {"messageId": message_id, "targetRoomId": target_room_id}
            )
        except ApiError as err:
            return self._failed("forward message", err)
        message = Message.model_validate(data["message"])
        self._append(target_room_id, message)
        self.notifier.info("Message forwarded")
        return ActionResult.ok(message)

    async def search_messages(self, query: str, room_id: int | None = None) -> ActionResult:
        room_id = room_id or self.state.current_room_id
        if room_id is None:
            return self._invalid("No room selected")
        if not query or not query.strip():
            self.state.search_results = []
            return ActionResult.ok([])
        try:
            data = await self.api.get("/messages-search", params={"roomId": room_id, "q": query.strip()})
        except ApiError as err:
            return self._failed("search messages", err)
        results = [Message.model_validate(m) for m in data.get("messages", [])]
        self.state.search_results = results
        return ActionResult.ok(results)

    def _append(self, room_id: int, message: Message) -> None:
        # the next poll may already have delivered it
        if self.state.current_room_id == room_id and message.id not in self.state.message_ids:
            self.state.messages = [*self.state.messages, message]
        self._note_activity([message])

    def _note_activity(self, messages: list[Message]) -> None:
        """Fold new messages into the room list without refetching it."""
        me = self.state.user.id if self.state.user else None
        per_room = Counter(
            m.room_id for m in messages if m.room_id is not None and m.user_id != me
        )
        rooms = apply_unread_counts(self.state.rooms, per_room, self.state.current_room_id)
        latest = {}
        for m in messages:
            if m.room_id is not None and (m.room_id not in latest or m.created_at > latest[m.room_id]):
                latest[m.room_id] = m.created_at
        rooms = [
            r.model_copy(update={"last_message_at": latest[r.id]})
            if r.id in latest and (r.last_message_at is None or _later(latest[r.id], r.last_message_at))
            else r
            for r in rooms
        ]
        self.state.rooms = sort_by_activity(rooms)


def _later(a, b) -> bool:
    try:
        return a > b
    except TypeError:
        # naive vs aware timestamps; let the newer message win
        return True
