"""
Shared asyncpg pool for partner and big-purchase storage.

Opened lazily on the first API request that needs storage; the relay routes
never touch it. Concurrent first requests share one pool.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import asyncpg

from .config import settings

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_pool_lock = asyncio.Lock()


async def init_db_pool(dsn: Optional[str] = None) -> asyncpg.Pool:
    global _pool
    async with _pool_lock:
        if _pool is not None:
            return _pool
        dsn = dsn or settings.database_url
        if not dsn:
            raise RuntimeError("DATABASE_URL is not set")
        _pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=1,
            max_size=settings.db_pool_max_size,
            command_timeout=30,
            server_settings={"application_name": settings.service_name},
        )
        logger.info(json.dumps({
            "event": "db_pool_opened",
            "max_size": settings.db_pool_max_size,
        }))
    return _pool


async def close_db_pool() -> None:
    global _pool
    async with _pool_lock:
        if _pool is None:
            return
        await _pool.close()
        _pool = None
    logger.info(json.dumps({"event": "db_pool_closed"}))


async def get_pool() -> asyncpg.Pool:
    return _pool or await init_db_pool()


def pool_ready() -> bool:
    """True once a request has opened the pool; reported by /health."""
    return _pool is not None
