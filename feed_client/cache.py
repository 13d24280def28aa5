"""
Keyed store of immutable query results.

Keys are tuples; a key prefix addresses a family of queries, e.g. ``("posts",)``
matches the unfiltered feed ``("posts",)`` and the filtered feed
``("posts", "alice")``. Values are replaced wholesale, never mutated, so a
saved value is an exact restore point.

A prefix can be held while a local mutation is pending. In-flight fetches under
a held prefix are cancelled, fetches requested meanwhile wait, and a result
that arrives while held is dropped. Releasing the last hold re-issues the
fetches that were cancelled.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from .models import FeedSnapshot

logger = logging.getLogger(__name__)

QueryKey = Tuple[str, ...]
Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[[], None]

POSTS_PREFIX: QueryKey = ("posts",)


def posts_key(username: Optional[str] = None) -> QueryKey:
    return POSTS_PREFIX + ((username,) if username else ())


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[:len(prefix)] == prefix


class QueryCache:
    def __init__(self) -> None:
        self._data: Dict[QueryKey, Any] = {}
        self._fetchers: Dict[QueryKey, Fetcher] = {}
        self._in_flight: Dict[QueryKey, asyncio.Task] = {}
        self._holds: Dict[QueryKey, int] = {}
        self._cancelled: Set[QueryKey] = set()
        self._background: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []
        self._released = asyncio.Event()
        self._released.set()

    # Data

    def get(self, key: QueryKey) -> Any:
        return self._data.get(key)

    def set(self, key: QueryKey, value: Any) -> None:
        self._data[key] = value

    def find_all(self, prefix: QueryKey) -> List[Tuple[QueryKey, Any]]:
        return [(k, v) for k, v in self._data.items() if _matches(k, prefix)]

    # Change notification

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # Holds

    def is_held(self, key: QueryKey) -> bool:
        return any(_matches(key, prefix) for prefix in self._holds)

    def hold(self, prefix: QueryKey) -> None:
        self._holds[prefix] = self._holds.get(prefix, 0) + 1
        self._released.clear()

    def release(self, prefix: QueryKey) -> None:
        count = self._holds.get(prefix, 0) - 1
        if count > 0:
            self._holds[prefix] = count
            return
        self._holds.pop(prefix, None)
        if not self._holds:
            self._released.set()

        for key in [k for k in self._cancelled if not self.is_held(k)]:
            self._cancelled.discard(key)
            task = asyncio.ensure_future(self.fetch(key))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    def cancel_queries(self, prefix: QueryKey) -> int:
        """Cancel in-flight fetches under `prefix`; they are retried on release."""
        cancelled = 0
        for key, task in list(self._in_flight.items()):
            if _matches(key, prefix) and not task.done():
                task.cancel()
                self._cancelled.add(key)
                cancelled += 1
        return cancelled

    # Fetching

    async def fetch(self, key: QueryKey, fetcher: Optional[Fetcher] = None) -> Any:
        """Run the fetcher for `key` and store its result, unless superseded."""
        if fetcher is not None:
            self._fetchers[key] = fetcher
        fetcher = self._fetchers.get(key)
        if fetcher is None:
            raise KeyError(f"No fetcher registered for {key!r}")

        while self.is_held(key):
            await self._released.wait()

        task = asyncio.ensure_future(fetcher())
        self._in_flight[key] = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]

        if task.cancelled():
            logger.debug(f"Fetch for {key!r} superseded by a pending mutation")
            return self._data.get(key)
        value = task.result()
        if self.is_held(key):
            self._cancelled.add(key)
            return self._data.get(key)
        self._data[key] = value
        self.notify()
        return value


def feed_fetcher(client, username: Optional[str] = None, limit: int = 20) -> Fetcher:
    """Fetcher for the first page of a post list, keyed by `posts_key(username)`."""
    async def fetcher() -> FeedSnapshot:
        page = await client.get_posts(page=1, limit=limit, username=username)
        return FeedSnapshot(pages=(page,))
    return fetcher


def add_comment_to_cache(cache: QueryCache, post_id: int) -> None:
    """After a comment is confirmed, bump `comment_count` in every cached list."""
    changed = False
    for key, feed in cache.find_all(POSTS_PREFIX):
        if isinstance(feed, FeedSnapshot) and feed.contains(post_id):
            cache.set(key, feed.map_post(
                post_id, lambda p: replace(p, comment_count=p.comment_count + 1)))
            changed = True
    if changed:
        cache.notify()
