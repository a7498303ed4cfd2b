"""
TaskBoard Backend - Session Storage Connection
==============================================

What:  The shared redis.asyncio client that backs RedisSessionStore.
How:   The client owns a connection pool and is safe for concurrent use by
       many requests. It is created at import (no connection is opened until
       the first command) and closed on shutdown.
Who:   `get_redis` is injected into the session store provider; the
       lifespan handler calls `ping_redis` and `close_redis`.

Every command inherits `socket_timeout` / `socket_connect_timeout` from
REDIS_TIMEOUT, so a hung Redis surfaces as a TimeoutError instead of
blocking the request indefinitely.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from taskboard.config import settings

logger = logging.getLogger(__name__)


redis_client: aioredis.Redis = aioredis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=settings.redis_timeout,
    socket_connect_timeout=settings.redis_timeout,
    health_check_interval=30,
)


async def get_redis() -> aioredis.Redis:
    """FastAPI dependency returning the process-wide Redis client."""
    return redis_client


@retry(
    retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError, OSError)),
    stop=stop_after_attempt(settings.startup_retry_attempts),
    wait=wait_exponential_jitter(
        initial=settings.startup_retry_min_wait,
        max=settings.startup_retry_max_wait,
        jitter=1,
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def ping_redis() -> None:
    """PING Redis, retrying with exponential backoff while it starts."""
    await redis_client.ping()
    logger.info("Redis connection verified")


async def close_redis() -> None:
    """Release the connection pool. Called on application shutdown."""
    await redis_client.aclose()
