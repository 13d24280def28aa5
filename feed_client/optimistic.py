"""
Optimistic like/unlike against the local post cache.

Each toggle goes ``idle -> optimistic -> confirmed | rolled_back``. The flip is
written into every cached post list containing the post before the request
is sent; a failed request restores the exact snapshots taken at that moment.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

from .api import FeedApiError
from .cache import POSTS_PREFIX, QueryCache, QueryKey
from .models import FeedSnapshot, LikeState

logger = logging.getLogger(__name__)

ToggleLike = Callable[[int], Awaitable[LikeState]]


class MutationState(str, enum.Enum):
    IDLE = "idle"
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class PendingToggle:
    post_id: int
    state: MutationState = MutationState.IDLE
    snapshots: Dict[QueryKey, FeedSnapshot] = field(default_factory=dict)
    result: Optional[LikeState] = None
    error: Optional[BaseException] = None


class OptimisticLikeUpdater:
    """Applies like toggles to `cache` before the server confirms them.

    `on_change` fires after the optimistic write and after a rollback so views
    reading the cache can redraw. `on_error` receives the failure after a
    rollback. With `reconcile`, a confirmed toggle overwrites the cached
    values with the server's counts, which also absorbs likes by other users.
    """

    def __init__(
        self,
        cache: QueryCache,
        toggle_like: ToggleLike,
        on_change: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[FeedApiError], None]] = None,
        reconcile: bool = False,
        prefix: QueryKey = POSTS_PREFIX,
    ):
        self.cache = cache
        self.toggle_like = toggle_like
        self.on_change = on_change
        self.on_error = on_error
        self.reconcile = reconcile
        self.prefix = prefix

    def _changed(self) -> None:
        self.cache.notify()
        if self.on_change is not None:
            self.on_change()

    def apply(self, post_id: int) -> PendingToggle:
        """Snapshot and flip every cached copy of the post."""
        pending = PendingToggle(post_id=post_id)
        self.cache.hold(self.prefix)
        self.cache.cancel_queries(self.prefix)

        for key, feed in self.cache.find_all(self.prefix):
            if isinstance(feed, FeedSnapshot) and feed.contains(post_id):
                pending.snapshots[key] = feed
                self.cache.set(key, feed.map_post(
                    post_id, lambda p: p.with_like(not p.is_liked_by_me)))

        pending.state = MutationState.OPTIMISTIC
        self._changed()
        return pending

    def confirm(self, pending: PendingToggle, result: LikeState) -> None:
        pending.result = result
        pending.state = MutationState.CONFIRMED
        if not self.reconcile:
            return

        changed = False
        for key, feed in self.cache.find_all(self.prefix):
            if not isinstance(feed, FeedSnapshot):
                continue
            cached = feed.find(pending.post_id)
            if cached is None:
                continue
            if (cached.is_liked_by_me, cached.like_count) != (result.liked, result.like_count):
                self.cache.set(key, feed.map_post(
                    pending.post_id, lambda p: p.with_like(result.liked, result.like_count)))
                changed = True
        if changed:
            self._changed()

    def rollback(self, pending: PendingToggle, error: BaseException) -> None:
        for key, snapshot in pending.snapshots.items():
            self.cache.set(key, snapshot)
        pending.error = error
        pending.state = MutationState.ROLLED_BACK
        self._changed()

    async def toggle(self, post_id: int) -> PendingToggle:
        """Run one toggle. API failures roll back and return; anything else
        (cancellation included) rolls back and propagates."""
        pending = self.apply(post_id)
        try:
            result = await self.toggle_like(post_id)
        except FeedApiError as e:
            logger.warning(f"Like toggle for post {post_id} failed, rolling back: {e}")
            self.rollback(pending, e)
            if self.on_error is not None:
                self.on_error(e)
        except BaseException as e:
            logger.warning(f"Like toggle for post {post_id} interrupted, rolling back: {e!r}")
            self.rollback(pending, e)
            raise
        else:
            self.confirm(pending, result)
        finally:
            self.cache.release(self.prefix)
        return pending
