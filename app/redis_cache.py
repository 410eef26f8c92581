"""
Redis Cache Module for GameCompare
Provides the media result cache and the dispatch idempotency claims with graceful degradation
"""

import json
import hashlib
import logging
from typing import Any, Optional, Dict

import redis

from constants import REDIS_URL

logger = logging.getLogger(__name__)

redis_client = None
_initialized = False


def get_client():
    """Connect on first use. Returns None when Redis is unreachable."""
    global redis_client, _initialized
    if _initialized:
        return redis_client

    _initialized = True
    try:
        client = redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=2, socket_timeout=2)
        client.ping()
        redis_client = client
        logger.info(f"Redis cache initialized at {REDIS_URL}")
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}. Cache and dispatch locks will be disabled.")
        redis_client = None
    return redis_client


def set_client(client) -> None:
    """Swap the client (tests, or a worker that manages its own pool)"""
    global redis_client, _initialized
    redis_client = client
    _initialized = True


def make_cache_key(prefix: str, *args, **kwargs) -> str:
    """
    Generate a cache key from arguments

    Dict arguments are hashed so keys stay short and stable.
    """
    key_parts = [prefix]

    for arg in args:
        if isinstance(arg, dict):
            key_parts.append(hashlib.md5(json.dumps(arg, sort_keys=True, default=str).encode()).hexdigest())
        else:
            key_parts.append(str(arg))

    for k, v in sorted(kwargs.items()):
        if isinstance(v, dict):
            key_parts.append(f"{k}={hashlib.md5(json.dumps(v, sort_keys=True, default=str).encode()).hexdigest()}")
        else:
            key_parts.append(f"{k}={v}")

    return ":".join(key_parts)


def cache_get_json(key: str) -> Optional[Any]:
    client = get_client()
    if not client:
        return None
    try:
        value = client.get(key)
    except redis.RedisError as e:
        logger.warning(f"Cache get error for {key}: {e}")
        return None

    if value is None:
        logger.debug(f"Cache MISS: {key}")
        return None
    logger.debug(f"Cache HIT: {key}")
    try:
        return json.loads(value)
    except (TypeError, json.JSONDecodeError):
        return None


def cache_set_json(key: str, value: Any, ttl: int = 300) -> bool:
    """
    Set a JSON value in cache with TTL

    Returns:
        True if set successfully, False otherwise
    """
    client = get_client()
    if not client:
        return False
    try:
        client.setex(key, ttl, json.dumps(value, default=str))
        logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
        return True
    except (redis.RedisError, TypeError, ValueError) as e:
        logger.warning(f"Cache set error for {key}: {e}")
        return False


def cache_delete(key: str) -> bool:
    client = get_client()
    if not client:
        return False
    try:
        result = client.delete(key)
        if result > 0:
            logger.debug(f"Cache DELETE: {key}")
        return result > 0
    except redis.RedisError as e:
        logger.warning(f"Cache delete error for {key}: {e}")
        return False


def claim_key(key: str, ttl: int) -> bool:
    """
    ``SET key 1 NX EX ttl``.

    True when this caller now owns the key, or when Redis is down (claims
    degrade to "always granted" so work is never silently dropped).
    """
    client = get_client()
    if not client:
        return True
    try:
        return bool(client.set(key, "1", nx=True, ex=max(1, int(ttl))))
    except redis.RedisError as e:
        logger.warning(f"Claim error for {key}: {e}")
        return True


def release_key(key: str) -> bool:
    return cache_delete(key)
