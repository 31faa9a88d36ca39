"""
Unit tests for the cache service.
"""

from marketplace.services.cache_service import CacheService


class FakeRedis:
    """The handful of string commands the cache uses."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])


def _connected_cache():
    cache = CacheService()
    cache._enabled = True
    cache.client = FakeRedis()
    return cache


class TestCacheService:
    """Cache-aside behavior."""

    def test_disabled_cache_always_loads(self):
        cache = CacheService()
        calls = []

        for _ in range(2):
            cache.memoize('public', 'catalog', 'page:1', lambda: calls.append(1) or {'n': 1}, ttl=10)

        assert len(calls) == 2
        assert cache.invalidate_module('public', 'catalog') is False

    def test_memoize_hits_after_first_load(self):
        cache = _connected_cache()
        calls = []

        def loader():
            calls.append(1)
            return {'data': [1, 2]}

        first = cache.memoize('public', 'catalog', 'page:1', loader, ttl=10)
        second = cache.memoize('public', 'catalog', 'page:1', loader, ttl=10)

        assert first == second == {'data': [1, 2]}
        assert len(calls) == 1

    def test_invalidation_hides_old_entries(self):
        cache = _connected_cache()
        cache.set('public', 'catalog', 'page:1', {'v': 1}, ttl=10)

        assert cache.invalidate_module('public', 'catalog') is True
        assert cache.get('public', 'catalog', 'page:1') is None

    def test_modules_are_independent(self):
        cache = _connected_cache()
        cache.set('public', 'catalog', 'k', 'catalog-value', ttl=10)
        cache.set('seller:1', 'catalog', 'k', 'seller-value', ttl=10)

        cache.invalidate_module('public', 'catalog')

        assert cache.get('seller:1', 'catalog', 'k') == 'seller-value'
