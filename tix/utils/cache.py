import json
import logging
from typing import Any, Callable, Coroutine, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from tix.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def init_redis(url: str) -> None:
    """
    Initialize global redis client. Call on FastAPI startup.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(url, decode_responses=True)


async def close_redis() -> None:
    """
    Close global redis connection. Call on FastAPI shutdown.
    """
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def get_redis() -> Optional[redis.Redis]:
    """
    Return the redis client when caching is enabled and initialized.
    """
    if not settings.scalability.CACHE_ENABLED:
        return None
    return _redis_client


def cache_key(*parts: Any) -> str:
    return settings.scalability.CACHE_KEY_PREFIX + ":".join(str(p) for p in parts)


async def cache_get(
    key: str,
    ttl: int,
    db_loader: Callable[[], Coroutine[Any, Any, Any]],
    serializer: Callable[[Any], str],
    deserializer: Callable[[str], Any] = lambda s: json.loads(s),
) -> Any:
    """
    Caching-aside helper:
    - Try to read `key` from Redis.
    - If present, return deserialized value.
    - If missing, call async db_loader(), serialize with `serializer`, set with TTL and return DB object.
    Without a redis client the loader is called directly.
    """
    r = get_redis()
    if r is None:
        return await db_loader()

    try:
        cached = await r.get(key)
    except RedisError as e:
        logger.warning("Cache read failed for %s: %s", key, e)
        return await db_loader()
    if cached is not None:
        return deserializer(cached)

    obj = await db_loader()
    if obj is None:
        return None

    try:
        await r.set(key, serializer(obj), ex=ttl)
    except RedisError as e:
        logger.warning("Cache write failed for %s: %s", key, e)
    return obj


async def get_version(key: str) -> str:
    r = get_redis()
    if r is None:
        return "0"
    try:
        return str(await r.get(key) or 0)
    except RedisError as e:
        logger.warning("Cache version read failed for %s: %s", key, e)
        return "0"


async def bump_version(key: str) -> None:
    """
    Increment a version key so every cache entry derived from it goes stale.
    """
    r = get_redis()
    if r is None:
        return
    try:
        await r.incr(key)
    except RedisError as e:
        logger.warning("Cache invalidation failed for %s: %s", key, e)


async def health_check() -> dict[str, Any]:
    r = get_redis()
    if r is None:
        return {"status": "disabled"}
    try:
        await r.ping()
        return {"status": "healthy"}
    except RedisError as e:
        return {"status": "error", "message": str(e)}
