"""The client-side cache shared by every synchronizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from roomchat.models.message import Message
from roomchat.models.room import Room
from roomchat.models.user import User

MessageStatus = Literal["idle", "loading", "ready"]


@dataclass
class ChatState:
    user: User | None = None
    rooms: list[Room] = field(default_factory=list)
    current_room_id: int | None = None
    messages: list[Message] = field(default_factory=list)
    message_status: MessageStatus = "idle"
    online_users: list[User] = field(default_factory=list)
    search_results: list[Message] = field(default_factory=list)
    rooms_loading: bool = False
    messages_loading: bool = False

    @property
    def current_room(self) -> Room | None:
        if self.current_room_id is None:
            return None
        return self.room(self.current_room_id)

    def room(self, room_id: int) -> Room | None:
        return next((r for r in self.rooms if r.id == room_id), None)

    def message(self, message_id: int) -> Message | None:
        return next((m for m in self.messages if m.id == message_id), None)

    @property
    def message_ids(self) -> set[int]:
        return {m.id for m in self.messages}

    def clear_active_room(self) -> None:
        self.current_room_id = None
        self.messages = []
        self.search_results = []
        self.message_status = "idle"

    def reset(self) -> None:
        """Forget everything; used on logout and expired sessions."""
        self.user = None
        self.rooms = []
        self.online_users = []
        self.rooms_loading = False
        self.messages_loading = False
        self.clear_active_room()
