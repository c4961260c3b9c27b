"""Redis backed key/value side-cache for catalog reads."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Optional

import redis

from .config import get_settings

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "products:active"
CATEGORIES_KEY = "categories:active"
PRODUCT_KEY = "product:{product_id}"


class CacheService:
    """JSON get/set/delete with TTL.

    A cache without a client is a no-op: every ``get`` misses and writes are
    dropped. Redis errors are logged and treated as misses, since the cache is
    never the store of record.
    """

    def __init__(self, client: Optional[redis.Redis], default_ttl: int = 600) -> None:
        self.client = client
        self.default_ttl = default_ttl

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def get(self, key: str) -> Optional[Any]:
        if self.client is None:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError:
            logger.warning("cache get failed for key %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if self.client is None:
            return
        try:
            self.client.set(key, json.dumps(value, default=str), ex=ttl or self.default_ttl)
        except redis.RedisError:
            logger.warning("cache set failed for key %s", key, exc_info=True)

    def delete(self, *keys: str) -> None:
        if self.client is None or not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.RedisError:
            logger.warning("cache delete failed for keys %s", keys, exc_info=True)


@lru_cache(maxsize=1)
def get_cache() -> CacheService:
    """Return the process-wide cache, disabled when no Redis URL is configured."""

    settings = get_settings()
    if not settings.redis_url:
        logger.info("redis not configured, catalog cache disabled")
        return CacheService(None, settings.cache_ttl_seconds)
    client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    return CacheService(client, settings.cache_ttl_seconds)
