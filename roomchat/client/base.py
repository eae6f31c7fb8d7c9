from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from roomchat.client.errors import ApiError, Unauthorized
from roomchat.client.notify import LoggingNotifier, Notifier
from roomchat.client.result import ActionResult
from roomchat.config import ClientConfig

if TYPE_CHECKING:
    from roomchat.client.scheduler import Scheduler
    from roomchat.client.state import ChatState
    from roomchat.client.transport import ApiClient

logger = logging.getLogger("roomchat.client")


class Synchronizer:
    """Shared plumbing: transport, cache, timers and failure reporting.

    User actions report failures through the notifier and return a failed
    :class:`ActionResult`; polls only log.
    """

    def __init__(
        self,
        api: ApiClient,
        state: ChatState,
        scheduler: Scheduler,
        config: ClientConfig | None = None,
        notifier: Notifier | None = None,
        on_unauthorized: Callable[[], None] | None = None,
    ) -> None:
        self.api = api
        self.state = state
        self.scheduler = scheduler
        self.config = config or ClientConfig()
        self.notifier = notifier or LoggingNotifier()
        self._on_unauthorized = on_unauthorized

    def _failed(self, action: str, err: ApiError) -> ActionResult:
        logger.warning("%s failed: %s", action, err.message)
        if isinstance(err, Unauthorized) and self._on_unauthorized is not None:
            self._on_unauthorized()
        self.notifier.error(err.message)
        return ActionResult.fail(err.message)

    def _invalid(self, message: str) -> ActionResult:
        self.notifier.error(message)
        return ActionResult.fail(message)

    def _poll_failed(self, what: str, err: ApiError) -> None:
        logger.warning("Failed to sync %s: %s", what, err.message)
        if isinstance(err, Unauthorized) and self._on_unauthorized is not None:
            self._on_unauthorized()
