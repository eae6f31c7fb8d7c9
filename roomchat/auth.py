from __future__ import annotations

from fastapi import Depends, Request

from roomchat.config import AppConfig
from roomchat.errors import Unauthorized
from roomchat.security import decode_access_token

TOKEN_COOKIE = "token"


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def extract_token(request: Request) -> str | None:
    """Bearer header first, then the ``token`` cookie."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer ") and auth[7:].strip():
        return auth[7:].strip()
    return request.cookies.get(TOKEN_COOKIE) or None


def current_user_id(request: Request, config: AppConfig = Depends(get_config)) -> int:
    """Verify the session token and return the caller's user id."""
    token = extract_token(request)
    if not token:
        raise Unauthorized("No token provided")
    claims = decode_access_token(token, config.jwt_secret)
    return claims["id"]
