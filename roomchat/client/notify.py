"""Transient user notifications for failed actions."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger("roomchat.client.notify")


class Notifier(Protocol):
    def error(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...


class LoggingNotifier:
    """Default notifier for headless use: notifications go to the log."""

    def error(self, message: str) -> None:
        logger.warning("%s", message)

    def info(self, message: str) -> None:
        logger.info("%s", message)


class RecordingNotifier:
    """Keeps notifications in memory, for UIs that render them later."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.infos: list[str] = []

    def error(self, message: str) -> None:
        self.errors.append(message)

    def info(self, message: str) -> None:
        self.infos.append(message)
