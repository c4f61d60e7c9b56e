"""
Client-side query cache keyed by API path.

Entries never go stale on their own; they are marked stale by invalidate()
(typically from a channel message) and refetched on the next read.
Subscribers of a key are told about each invalidation so dependent views can
refresh without a full reload.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Any]]
InvalidationListener = Callable[[str], None]


@dataclass
class CacheEntry:
    data: Any
    fetched_at: datetime
    stale: bool = False


def _matches(query_key: str, prefix: str) -> bool:
    if query_key == prefix:
        return True
    return query_key.startswith(prefix) and query_key[len(prefix)] in "/?"


class QueryCache:
    def __init__(self, fetcher: Optional[Fetcher] = None):
        self.fetcher = fetcher
        self._entries: Dict[str, CacheEntry] = {}
        self._listeners: Dict[str, List[InvalidationListener]] = {}
        self.invalidations: List[str] = []

    def get_data(self, key: str) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry else None

    def set_data(self, key: str, data: Any):
        self._entries[key] = CacheEntry(data=data, fetched_at=datetime.utcnow())

    def is_stale(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    async def fetch(self, key: str) -> Any:
        """Return cached data, refetching when missing or invalidated."""
        entry = self._entries.get(key)
        if entry is not None and not entry.stale:
            return entry.data
        if self.fetcher is None:
            raise RuntimeError(f"No fetcher configured for query {key}")

        data = await self.fetcher(key)
        self.set_data(key, data)
        return data

    def subscribe(self, key: str, listener: InvalidationListener) -> Callable[[], None]:
        """Register a listener for invalidations of key. Returns an unsubscribe function."""
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe():
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def invalidate(self, key: str):
        """
        Mark key (and keys nested under it) stale. Idempotent: invalidating
        an already-stale entry leaves the same end state.
        """
        self.invalidations.append(key)
        for query_key, entry in self._entries.items():
            if _matches(query_key, key):
                entry.stale = True
        logger.debug(f"Invalidated query {key}")

        for listener_key, listeners in self._listeners.items():
            if not _matches(listener_key, key):
                continue
            for listener in list(listeners):
                try:
                    listener(listener_key)
                except Exception as e:
                    logger.error(f"Invalidation listener for {listener_key} failed: {e}", exc_info=True)
