"""roomchat API: FastAPI service for rooms, messages, reactions and presence."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from roomchat.config import AppConfig
from roomchat.db.pool_manager import PoolManager
from roomchat.errors import ChatError
from roomchat.routers import auth, health, messages, reactions, room_members, rooms, users

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("roomchat")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting roomchat API...")
    config = AppConfig.load()
    app.state.config = config

    pool_manager = PoolManager()
    await pool_manager.init(config)
    app.state.pool_manager = pool_manager

    logger.info("roomchat API ready")

    yield

    # Shutdown
    logger.info("Shutting down roomchat API...")
    await pool_manager.close()


app = FastAPI(
    title="roomchat API",
    version="1.0.0",
    lifespan=lifespan,
)

# Any origin, with credentials: the origin is echoed back rather than "*"
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=".*",
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"error": f"{field}: {message}" if field else message},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(rooms.router)
app.include_router(room_members.router)
app.include_router(messages.router)
app.include_router(reactions.router)


def run() -> None:
    import os

    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
