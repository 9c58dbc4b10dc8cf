# recess_poc/cache.py
import hashlib
import json
from typing import Any, Optional
import redis

from recess_poc.config import settings
from recess_poc.core.logging import get_logger

log = get_logger("cache")

_redis: Optional[redis.Redis] = None


def get_redis() -> Optional[redis.Redis]:
    global _redis
    if _redis is not None:
        return _redis
    try:
        _redis = redis.from_url(settings.redis_url, decode_responses=True)
        # quick ping so misconfig fails fast
        _redis.ping()
        return _redis
    except redis.RedisError:
        # no Redis → app still works, just without cache
        log.warning("redis_unavailable", extra={"url": settings.redis_url})
        _redis = None
        return None


def cache_key(prefix: str, payload: Any) -> str:
    digest = hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode()).hexdigest()
    return f"{prefix}:{digest[:32]}"


def cache_get(key: str) -> Optional[Any]:
    r = get_redis()
    if not r:
        return None
    try:
        val = r.get(key)
    except redis.RedisError:
        log.warning("cache_get_failed", extra={"key": key})
        return None
    if val is None:
        return None
    try:
        return json.loads(val)
    except ValueError:
        return None


def cache_set(key: str, value: Any, ttl_seconds: int = 60) -> None:
    r = get_redis()
    if not r:
        return
    try:
        r.setex(key, ttl_seconds, json.dumps(value, default=str))
    except redis.RedisError:
        # fail open – never block main path on cache errors
        log.warning("cache_set_failed", extra={"key": key})
