"""
Redis Client Management
One shared connection for the result store and the weather/festival cache
"""

import time
from functools import lru_cache
from typing import Any, Dict

import redis
from loguru import logger

from ..config import settings


# A blocked command is abandoned after this long and surfaces as a miss
SOCKET_TIMEOUT_SECONDS = 5


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Get the shared Redis client

    Raises:
        redis.RedisError: If Redis does not answer a PING; nothing is cached,
        so the next call retries
    """
    client = redis.Redis.from_url(
        settings.redis_url,
        password=settings.REDIS_PASSWORD,
        decode_responses=True,
        socket_timeout=SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=SOCKET_TIMEOUT_SECONDS
    )

    try:
        client.ping()
    except redis.RedisError as e:
        logger.error(f"Failed to connect to Redis at {settings.redis_url}: {e}")
        client.close()
        raise

    logger.info(f"Redis connected: {settings.redis_url} (prefix: {settings.REDIS_KEY_PREFIX})")
    return client


def check_redis_health(client: redis.Redis) -> Dict[str, Any]:
    """Ping Redis and report round-trip latency"""
    started = time.perf_counter()
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return {"healthy": False, "error": str(e)}

    return {"healthy": True, "latency_ms": round((time.perf_counter() - started) * 1000, 2)}
