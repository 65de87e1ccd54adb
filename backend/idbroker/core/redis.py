# backend/idbroker/core/redis.py
"""
Redis client for the ephemeral grant store.

Route handlers call the grant store from worker threads (``asyncio.to_thread``),
so a plain synchronous client with its own connection pool is used.
"""

import logging
from typing import Optional

from redis import Redis

from .config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[Redis] = None


def get_redis_client() -> Redis:
    """Get or create the shared Redis client."""
    global _redis_client

    if _redis_client is None:
        _redis_client = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        logger.info("[REDIS] Grant store client initialized")

    return _redis_client


def close_redis_client() -> None:
    """Close the Redis client gracefully."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
        logger.info("[REDIS] Grant store client closed")
