"""The client library against the running app."""

import httpx
import pytest

from feed_client import FeedApiClient, FeedApiError, OptimisticLikeUpdater, QueryCache
from feed_client.cache import add_comment_to_cache, feed_fetcher, posts_key
from feed_client.optimistic import MutationState


def _api(token=None):
    from app.main import app

    return FeedApiClient("http://test", token=token, transport=httpx.ASGITransport(app=app))


async def test_feed_round_trip():
    async with _api() as alice_api, _api() as bob_api:
        await alice_api.signup("alice", "alice@example.com", "secret123")
        await bob_api.signup("bob", "bob@example.com", "secret123")
        post = await alice_api.create_post("first post")

        cache = QueryCache()
        feed = await cache.fetch(posts_key(), feed_fetcher(bob_api))
        assert feed.find(post.id).like_count == 0

        updater = OptimisticLikeUpdater(cache, bob_api.toggle_like, reconcile=True)
        pending = await updater.toggle(post.id)
        assert pending.state == MutationState.CONFIRMED
        cached = cache.get(posts_key()).find(post.id)
        assert (cached.is_liked_by_me, cached.like_count) == (True, 1)

        comment = await bob_api.create_comment(post.id, "nice")
        add_comment_to_cache(cache, post.id)
        assert cache.get(posts_key()).find(post.id).comment_count == 1

        comments, pagination = await alice_api.get_comments(post.id)
        assert [c.id for c in comments] == [comment.id]
        assert pagination.total == 1


async def test_missing_post_rolls_back():
    async with _api() as api:
        await api.signup("carol", "carol@example.com", "secret123")
        errors = []
        updater = OptimisticLikeUpdater(QueryCache(), api.toggle_like, on_error=errors.append)

        pending = await updater.toggle(12345)

        assert pending.state == MutationState.ROLLED_BACK
        assert errors[0].status_code == 404
        assert errors[0].message == "Post not found"


async def test_logout_clears_token():
    async with _api() as api:
        await api.signup("dave", "dave@example.com", "secret123")
        await api.register_device_token("dave-phone")
        await api.logout()
        assert api.token is None

        with pytest.raises(FeedApiError) as exc_info:
            await api.create_post("anonymous")
        assert exc_info.value.status_code == 401
