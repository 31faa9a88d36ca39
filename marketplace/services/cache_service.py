"""
Redis Cache Service.

Cache-aside storage for storefront reads. Redis being disabled or
unreachable only turns every lookup into a miss; callers never see errors.

Keys: {prefix}:{namespace}:{module}:g{generation}:{key}

Invalidation bumps the module's generation counter instead of scanning for
keys, so old pages simply stop being read and expire on their TTL.
"""

import logging
import json
from typing import Any, Optional, Callable

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask, current_app, has_app_context

logger = logging.getLogger(__name__)


class CacheService:
    """
    Redis-based caching service.

    The namespace is 'public' for storefront reads or 'seller:<id>' for
    seller-scoped data.
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._prefix: str = "marketplace"

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'marketplace')

        if not self._enabled:
            logger.info("[CACHE] Cache is DISABLED via config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CACHE] Redis connection failed: {e}. Cache DISABLED.")
            self._enabled = False
            self.client = None

    @property
    def enabled(self) -> bool:
        return self._enabled and self.client is not None

    def _generation_key(self, namespace: str, module: str) -> str:
        return f"{self._prefix}:{namespace}:{module}:gen"

    def _build_key(self, namespace: str, module: str, key: str) -> str:
        generation = self.client.get(self._generation_key(namespace, module)) or 0
        return f"{self._prefix}:{namespace}:{module}:g{generation}:{key}"

    def get(self, namespace: str, module: str, key: str) -> Optional[Any]:
        """Cached value, or None on a miss or any Redis problem."""
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self._build_key(namespace, module, key))
            return json.loads(raw) if raw is not None else None
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"[CACHE] Get error: {e}")
            return None

    def set(self, namespace: str, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60) if has_app_context() else 60
        try:
            self.client.setex(self._build_key(namespace, module, key), ttl, json.dumps(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Set error: {e}")
            return False

    def memoize(self, namespace: str, module: str, key: str, loader_fn: Callable[[], Any],
                ttl: Optional[int] = None) -> Any:
        """Cache-aside: return the cached value or load, store and return it."""
        cached = self.get(namespace, module, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(namespace, module, key, value, ttl)
        return value

    def invalidate_module(self, namespace: str, module: str) -> bool:
        """Make every cached entry of a module unreachable."""
        if not self.enabled:
            return False
        try:
            generation = self.client.incr(self._generation_key(namespace, module))
            logger.info(f"[CACHE] INVALIDATE {namespace}:{module} (generation {generation})")
            return True
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate error: {e}")
            return False


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    """Initialize cache service singleton."""
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    """Get cache service instance."""
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service


def invalidate_catalog_cache() -> None:
    """Drop cached storefront pages after availability or stock changes."""
    if _cache_service is None:
        return
    _cache_service.invalidate_module('public', 'catalog')
