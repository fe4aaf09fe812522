"""Process-wide Redis client for the shared comparison cache."""

import threading

import redis
from redis.exceptions import RedisError

from rankinsight.core.config import settings
from rankinsight.core.logging import get_logger

logger = get_logger(__name__)

_redis_client: redis.Redis | None = None
_client_lock = threading.Lock()


def _connect(url: str) -> redis.Redis:
    client = redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=1,
        socket_timeout=1,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    client.ping()
    return client


def get_redis_client() -> redis.Redis | None:
    """
    Shared client, connecting on first use.

    Returns None when Redis is disabled, not configured or unreachable, unless
    REDIS_REQUIRED is set, in which case the failure is raised.
    """
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None
    if _redis_client is not None:
        return _redis_client

    with _client_lock:
        if _redis_client is not None:
            return _redis_client
        if not settings.REDIS_URL:
            if settings.REDIS_REQUIRED:
                raise ValueError("REDIS_URL must be set when REDIS_REQUIRED=true")
            logger.warning("redis_not_configured", extra={"event": "redis_not_configured"})
            return None
        try:
            _redis_client = _connect(settings.REDIS_URL)
        except RedisError as e:
            if settings.REDIS_REQUIRED:
                raise
            logger.warning("redis_connect_failed", extra={"event": "redis_connect_failed", "error": str(e)})
            return None
        logger.info("redis_connected", extra={"event": "redis_connected"})
        return _redis_client


def init_redis() -> None:
    """Connect eagerly at startup so a required Redis fails fast."""
    get_redis_client()


def close_redis() -> None:
    global _redis_client

    with _client_lock:
        if _redis_client is not None:
            _redis_client.close()
            _redis_client = None
