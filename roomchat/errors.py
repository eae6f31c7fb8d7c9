"""Domain errors raised by services and rendered as ``{"error": ...}`` bodies."""

from __future__ import annotations


class ChatError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequest(ChatError):
    status_code = 400


class Unauthorized(ChatError):
    status_code = 401


class Forbidden(ChatError):
    status_code = 403


class NotFound(ChatError):
    status_code = 404
