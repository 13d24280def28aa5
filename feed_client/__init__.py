# Client library for the feed API
from .api import FeedApiClient, FeedApiError
from .cache import QueryCache, POSTS_PREFIX, posts_key, feed_fetcher, add_comment_to_cache
from .models import Author, Comment, FeedPage, FeedSnapshot, LikeState, Pagination, Post, Session
from .optimistic import MutationState, OptimisticLikeUpdater, PendingToggle
