"""Authentication state: token and current user."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from roomchat.client.errors import ApiError
from roomchat.client.notify import LoggingNotifier, Notifier
from roomchat.client.result import ActionResult
from roomchat.models.user import User

if TYPE_CHECKING:
    from roomchat.client.state import ChatState
    from roomchat.client.transport import ApiClient

logger = logging.getLogger("roomchat.client.session")


class AuthSession:
    def __init__(
        self,
        api: ApiClient,
        state: ChatState,
        notifier: Notifier | None = None,
        token: str | None = None,
    ) -> None:
        self.api = api
        self.state = state
        self.notifier = notifier or LoggingNotifier()
        self.token = token
        api.set_token_provider(lambda: self.token)

    @property
    def user(self) -> User | None:
        return self.state.user

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        avatar: str | None = None,
    ) -> ActionResult:
        if not (email and password and name):
            return self._invalid("Email, password and name are required")
        return await self._authenticate(
            "register",
            {"action": "register", "email": email, "password": password, "name": name, "avatar": avatar},
        )

    async def login(self, email: str, password: str) -> ActionResult:
        if not (email and password):
            return self._invalid("Email and password are required")
        return await self._authenticate(
            "login", {"action": "login", "email": email, "password": password}
        )

    async def logout(self) -> ActionResult:
        """Tell the server, then drop local credentials whatever it answered."""
        try:
            if self.token:
                await self.api.post("/auth", {"action": "logout"})
        except ApiError as err:
            logger.warning("Logout request failed: %s", err.message)
        finally:
            self.clear()
        return ActionResult.ok()

    async def check_auth(self) -> ActionResult:
        if not self.token:
            self.clear()
            return ActionResult.fail("Not authenticated")
        try:
            data = await self.api.get("/users")
        except ApiError as err:
            logger.info("Stored session rejected: %s", err.message)
            self.clear()
            return ActionResult.fail(err.message)
        self.state.user = User.model_validate(data["user"])
        return ActionResult.ok(self.state.user)

    async def update_profile(self, name: str | None = None, avatar: str | None = None) -> ActionResult:
        try:
            data = await self.api.put("/users", {"name": name, "avatar": avatar})
        except ApiError as err:
            self.notifier.error(err.message)
            return ActionResult.fail(err.message)
        self.state.user = User.model_validate(data["user"])
        return ActionResult.ok(self.state.user)

    def clear(self) -> None:
        self.token = None
        self.state.reset()

    async def _authenticate(self, action: str, body: dict) -> ActionResult:
        try:
            data = await self.api.post("/auth", body)
        except ApiError as err:
            logger.warning("%s failed: %s", action, err.message)
            self.notifier.error(err.message)
            return ActionResult.fail(err.message)
        self.token = data["token"]
        self.state.user = User.model_validate(data["user"])
        logger.info("Authenticated as user %s", self.state.user.id)
        return ActionResult.ok(self.state.user)

    def _invalid(self, message: str) -> ActionResult:
        self.notifier.error(message)
        return ActionResult.fail(message)
