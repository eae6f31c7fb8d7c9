"""Business logic: registration, login and logout."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from roomchat import security
from roomchat.db import users as users_db
from roomchat.errors import BadRequest, ChatError, Unauthorized
from roomchat.models.user import AuthResponse, User

if TYPE_CHECKING:
    from roomchat.config import AppConfig
    from roomchat.db.pool_manager import PoolManager

logger = logging.getLogger("roomchat.auth")


async def register(
    pool_manager: PoolManager,
    config: AppConfig,
    email: str | None,
    password: str | None,
    name: str | None,
    avatar: str | None = None,
) -> AuthResponse:
    if not email or not password or not name:
        raise BadRequest("Name, email and password are required")

    pool = pool_manager.pool
    if await users_db.email_exists(pool, email):
        raise BadRequest("User already exists")

    row = await users_db.insert_user(
        pool, email, security.hash_password(password), name, avatar or ""
    )
    logger.info("Registered user %s", row["id"])
    return _session(row, config)


async def login(
    pool_manager: PoolManager,
    config: AppConfig,
    email: str | None,
    password: str | None,
) -> AuthResponse:
    if not email or not password:
        raise Unauthorized("Invalid credentials")

    pool = pool_manager.pool
    row = await users_db.get_user_with_password(pool, email)
    if not row or not security.verify_password(row.pop("password"), password):
        raise Unauthorized("Invalid credentials")

    await users_db.set_presence(pool, row["id"], online=True)
    row["online"] = True
    return _session(row, config)


async def logout(pool_manager: PoolManager, config: AppConfig, token: str | None) -> None:
    """Mark the token's user offline; an invalid token still logs out."""
    if not token:
        return
    try:
        claims = security.decode_access_token(token, config.jwt_secret)
    except ChatError:
        return
    await users_db.set_presence(pool_manager.pool, claims["id"], online=False)


def _session(row: dict, config: AppConfig) -> AuthResponse:
    user = User.model_validate(row)
    token = security.create_access_token(
        user.id, user.email or "", config.jwt_secret, config.token_ttl_days
    )
    return AuthResponse(user=user, token=token)
