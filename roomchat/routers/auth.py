from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from roomchat.auth import TOKEN_COOKIE, extract_token, get_config
from roomchat.config import AppConfig
from roomchat.errors import BadRequest
from roomchat.models.user import AuthRequest, AuthResponse
from roomchat.services import auth_service

router = APIRouter()


@router.post("/auth", response_model=None)
async def auth(
    request: Request,
    response: Response,
    body: AuthRequest,
    config: AppConfig = Depends(get_config),
) -> AuthResponse | dict:
    """Register, log in or log out depending on ``action``."""
    pool_manager = request.app.state.pool_manager

    if body.action == "register":
        session = await auth_service.register(
            pool_manager=pool_manager,
            config=config,
            email=body.email,
            password=body.password,
            name=body.name,
            avatar=body.avatar,
        )
        response.status_code = 201
        _set_session_cookie(response, session.token, config)
        return session

    if body.action == "login":
        session = await auth_service.login(
            pool_manager=pool_manager,
            config=config,
            email=body.email,
            password=body.password,
        )
        _set_session_cookie(response, session.token, config)
        return session

    if body.action == "logout":
        await auth_service.logout(pool_manager, config, extract_token(request))
        response.delete_cookie(TOKEN_COOKIE, httponly=True, secure=True, samesite="strict")
        return {"message": "Logged out successfully"}

    raise BadRequest("Invalid action")


def _set_session_cookie(response: Response, token: str, config: AppConfig) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=config.token_ttl_days * 86400,
        httponly=True,
        secure=True,
        samesite="strict",
    )
