"""
Client query cache: refetch after invalidation and prefix matching
"""
import pytest

from realtime.query_cache import QueryCache


@pytest.fixture
def fetches():
    return []


@pytest.fixture
def cache(fetches):
    async def fetcher(key):
        fetches.append(key)
        return {"key": key, "version": len(fetches)}

    return QueryCache(fetcher=fetcher)


async def test_fetch_caches_until_invalidated(cache, fetches):
    first = await cache.fetch("/api/user")
    second = await cache.fetch("/api/user")
    assert first is second
    assert fetches == ["/api/user"]

    cache.invalidate("/api/user")
    third = await cache.fetch("/api/user")
    assert third["version"] == 2


async def test_invalidate_matches_nested_keys(cache):
    await cache.fetch("/api/notifications")
    await cache.fetch("/api/notifications/unread-count")
    await cache.fetch("/api/notifications-archive")

    cache.invalidate("/api/notifications")

    assert cache.is_stale("/api/notifications")
    assert cache.is_stale("/api/notifications/unread-count")
    assert not cache.is_stale("/api/notifications-archive")


def test_listeners_are_told_about_invalidation():
    cache = QueryCache()
    seen = []
    unsubscribe = cache.subscribe("/api/user", seen.append)

    cache.invalidate("/api/user")
    unsubscribe()
    cache.invalidate("/api/user")

    assert seen == ["/api/user"]


async def test_fetch_without_fetcher_fails():
    with pytest.raises(RuntimeError):
        await QueryCache().fetch("/api/user")
