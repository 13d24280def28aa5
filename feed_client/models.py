"""Immutable client-side views of API payloads."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Author:
    id: int
    username: str


@dataclass(frozen=True)
class Post:
    id: int
    content: str
    created_at: str
    author: Author
    like_count: int
    comment_count: int
    is_liked_by_me: bool

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Post":
        return cls(
            id=payload["id"],
            content=payload["content"],
            created_at=payload["createdAt"],
            author=Author(**payload["author"]),
            like_count=payload.get("likeCount", 0),
            comment_count=payload.get("commentCount", 0),
            is_liked_by_me=payload.get("isLikedByMe", False),
        )

    def with_like(self, liked: bool, like_count: Optional[int] = None) -> "Post":
        """Copy with the like state set; the count moves by one unless given."""
        if like_count is None:
            if liked == self.is_liked_by_me:
                like_count = self.like_count
            else:
                like_count = self.like_count + (1 if liked else -1)
        return replace(self, is_liked_by_me=liked, like_count=max(like_count, 0))


@dataclass(frozen=True)
class Comment:
    id: int
    content: str
    created_at: str
    author: Author

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Comment":
        return cls(
            id=payload["id"],
            content=payload["content"],
            created_at=payload["createdAt"],
            author=Author(**payload["author"]),
        )


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Pagination":
        return cls(
            page=payload["page"],
            limit=payload["limit"],
            total=payload["total"],
            total_pages=payload["totalPages"],
        )


@dataclass(frozen=True)
class FeedPage:
    posts: Tuple[Post, ...]
    pagination: Pagination


@dataclass(frozen=True)
class FeedSnapshot:
    """One cached post list: the pages loaded so far, oldest page first."""
    pages: Tuple[FeedPage, ...] = ()

    def contains(self, post_id: int) -> bool:
        return any(p.id == post_id for page in self.pages for p in page.posts)

    def find(self, post_id: int) -> Optional[Post]:
        for page in self.pages:
            for p in page.posts:
                if p.id == post_id:
                    return p
        return None

    def map_post(self, post_id: int, fn) -> "FeedSnapshot":
        """New snapshot with `fn` applied to every copy of the post."""
        if not self.contains(post_id):
            return self
        return FeedSnapshot(pages=tuple(
            replace(page, posts=tuple(fn(p) if p.id == post_id else p for p in page.posts))
            for page in self.pages
        ))


@dataclass(frozen=True)
class LikeState:
    liked: bool
    like_count: int


@dataclass(frozen=True)
class Session:
    user_id: int
    username: str
    email: str
    token: str
