"""Client facade: one object per signed-in user."""

from __future__ import annotations

import logging

import httpx

from roomchat.client.members import MemberDirectory
from roomchat.client.messages import MessageSynchronizer
from roomchat.client.notify import LoggingNotifier, Notifier
from roomchat.client.presence import PresenceTracker
from roomchat.client.reactions import ReactionSynchronizer
from roomchat.client.result import ActionResult
from roomchat.client.rooms import RoomSynchronizer
from roomchat.client.scheduler import Scheduler
from roomchat.client.session import AuthSession
from roomchat.client.state import ChatState
from roomchat.client.transport import ApiClient
from roomchat.config import ClientConfig

logger = logging.getLogger("roomchat.client")


class ChatClient:
    def __init__(
        self,
        config: ClientConfig | None = None,
        notifier: Notifier | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.notifier = notifier or LoggingNotifier()
        self.state = ChatState()
        self.scheduler = Scheduler()
        self.api = ApiClient(
            self.config.base_url,
            timeout=self.config.request_timeout,
            transport=transport,
        )
        self.session = AuthSession(self.api, self.state, self.notifier, token=token)

        common = dict(
            api=self.api,
            state=self.state,
            scheduler=self.scheduler,
            config=self.config,
            notifier=self.notifier,
            on_unauthorized=self._session_expired,
        )
        self.rooms = RoomSynchronizer(on_room_changed=self.select_room, **common)
        self.messages = MessageSynchronizer(**common)
        self.reactions = ReactionSynchronizer(**common)
        self.presence = PresenceTracker(**common)
        self.members = MemberDirectory(rooms=self.rooms, **common)

    async def start(self) -> None:
        """Load rooms and start room polling and heartbeat; needs a session."""
        await self.rooms.fetch_rooms()
        self.rooms.start_polling()
        await self.presence.start()
        logger.info("Chat client started with %d rooms", len(self.state.rooms))

    async def select_room(self, room_id: int | None) -> ActionResult:
        self.reactions.stop_polling()
        result = await self.messages.select_room(room_id)
        if room_id is not None and self.state.message_status == "ready":
            self.reactions.start_polling(room_id)
        return result

    async def logout(self) -> ActionResult:
        self.scheduler.cancel_all()
        if self.session.authenticated:
            await self.presence.update_presence("offline")
        return await self.session.logout()

    async def close(self) -> None:
        self.scheduler.cancel_all()
        await self.api.aclose()

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def _session_expired(self) -> None:
        logger.info("Session expired, stopping timers")
        self.scheduler.cancel_all()
        self.session.clear()
        self.notifier.error("Session expired, please log in again")
