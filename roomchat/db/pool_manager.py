"""Manages the asyncpg connection pool for the chat database."""

from __future__ import annotations

import logging

import asyncpg

from roomchat.config import AppConfig

logger = logging.getLogger("roomchat.pool")


class PoolManager:
    def __init__(self) -> None:
        self.pool: asyncpg.Pool | None = None

    async def init(self, config: AppConfig) -> None:
        logger.info("Connecting to chat DB...")
        self.pool = await asyncpg.create_pool(
            config.database_dsn, min_size=2, max_size=10
        )
        logger.info("Chat DB pool ready")

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            logger.info("Closed chat DB pool")

    @property
    def connected(self) -> bool:
        return self.pool is not None


# Query helpers accept either the pool or a connection inside a transaction.
Executor = asyncpg.Pool | asyncpg.Connection


def escape_like(value: str) -> str:
    """Escape ``%``, ``_`` and ``\\`` so *value* matches literally inside ILIKE."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
