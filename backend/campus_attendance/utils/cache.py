"""Optional cache-aside helper for read-heavy catalogue listings.

Attendance and promotion logic always read the database and never touch this.
"""
import json
import logging
from typing import Any, Callable, Optional

import redis
from flask import current_app

logger = logging.getLogger(__name__)

class Cache:
    """Thin redis wrapper that degrades to pass-through when Redis is absent."""

    def __init__(self, url: Optional[str], ttl_seconds: int = 300, prefix: str = 'campus:'):
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self._client = redis.Redis.from_url(url, socket_timeout=1) if url else None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def get_or_set(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value for key, loading and storing it on a miss."""
        if not self._client:
            return loader()

        full_key = self.prefix + key
        try:
            cached = self._client.get(full_key)
            if cached is not None:
                return json.loads(cached)
        except redis.RedisError as e:
            logger.warning("Cache read failed for %s: %s", full_key, e)
            return loader()

        value = loader()
        try:
            self._client.setex(full_key, self.ttl_seconds, json.dumps(value))
        except redis.RedisError as e:
            logger.warning("Cache write failed for %s: %s", full_key, e)
        return value

    def invalidate(self, key: str) -> None:
        if not self._client:
            return
        try:
            self._client.delete(self.prefix + key)
        except redis.RedisError as e:
            logger.warning("Cache invalidation failed for %s: %s", key, e)

def get_cache() -> Cache:
    """Cache bound to the current app, created on first use."""
    cache = current_app.extensions.get('catalog_cache')
    if cache is None:
        cache = Cache(
            current_app.config.get('REDIS_URL'),
            current_app.config.get('CACHE_TTL_SECONDS', 300)
        )
        current_app.extensions['catalog_cache'] = cache
    return cache
