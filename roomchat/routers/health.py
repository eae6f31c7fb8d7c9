from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict:
    pm = request.app.state.pool_manager
    return {
        "status": "ok",
        "version": request.app.version,
        "database_connected": pm.connected,
    }
