"""Redis cache helpers.

Every Redis failure is re-raised as ``CacheUnavailableError`` so callers can
fall back to recomputing.
"""

from __future__ import annotations

import json
from typing import Any

import redis
from redis.exceptions import RedisError

from rankinsight.core.exceptions import CacheUnavailableError
from rankinsight.core.logging import get_logger
from rankinsight.core.redis_client import get_redis_client

logger = get_logger(__name__)


def _client() -> redis.Redis:
    client = get_redis_client()
    if client is None:
        raise CacheUnavailableError("Redis is disabled or unreachable")
    return client


def get_json(key: str) -> Any | None:
    client = _client()
    try:
        raw = client.get(key)
    except RedisError as e:
        logger.warning("redis_get_json_failed", extra={"event": "redis_get_json_failed", "key": key, "error": str(e)})
        raise CacheUnavailableError(str(e)) from e
    if not raw:
        return None
    return json.loads(raw)


def set_json(key: str, value: Any, ttl_seconds: int) -> None:
    client = _client()
    try:
        client.setex(key, int(ttl_seconds), json.dumps(value))
    except RedisError as e:
        logger.warning("redis_set_json_failed", extra={"event": "redis_set_json_failed", "key": key, "error": str(e)})
        raise CacheUnavailableError(str(e)) from e


def delete(key: str) -> bool:
    client = _client()
    try:
        return bool(client.delete(key))
    except RedisError as e:
        logger.warning("redis_delete_failed", extra={"event": "redis_delete_failed", "key": key, "error": str(e)})
        raise CacheUnavailableError(str(e)) from e


def delete_pattern(pattern: str) -> int:
    """Delete every key matching a pattern, walking the keyspace with SCAN."""
    client = _client()
    deleted = 0
    try:
        pipe = client.pipeline(transaction=False)
        for key in client.scan_iter(match=pattern, count=500):
            pipe.delete(key)
            deleted += 1
            if deleted % 200 == 0:
                pipe.execute()
        if deleted % 200 != 0:
            pipe.execute()
    except RedisError as e:
        logger.warning(
            "redis_delete_pattern_failed",
            extra={"event": "redis_delete_pattern_failed", "pattern": pattern, "error": str(e)},
        )
        raise CacheUnavailableError(str(e)) from e
    return deleted


def count_pattern(pattern: str) -> int:
    client = _client()
    try:
        return sum(1 for _ in client.scan_iter(match=pattern, count=500))
    except RedisError as e:
        raise CacheUnavailableError(str(e)) from e
