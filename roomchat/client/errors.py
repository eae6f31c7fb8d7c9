"""Classified transport failures raised by :class:`roomchat.client.transport.ApiClient`."""

from __future__ import annotations


class ApiError(Exception):
    """Base for every failure the transport reports."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class BadRequest(ApiError):
    pass


class Conflict(BadRequest):
    pass


class Unauthorized(ApiError):
    pass


class Forbidden(ApiError):
    pass


class NotFound(ApiError):
    pass


class ServerError(ApiError):
    pass


class NetworkError(ApiError):
    pass


_BY_STATUS: dict[int, type[ApiError]] = {
    400: BadRequest,
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
}


def error_for_status(status: int, message: str) -> ApiError:
    if status >= 500:
        return ServerError(message, status)
    return _BY_STATUS.get(status, BadRequest)(message, status)
