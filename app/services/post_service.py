from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import exists, false, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError
from ..models import Comment, Like, Post, User
from ..schemas import AuthorSummary, PostItem


async def get_post(db: AsyncSession, post_id: int) -> Post:
    res = await db.execute(select(Post).where(Post.id == post_id))
    post = res.scalar_one_or_none()
    if post is None:
        raise NotFoundError("Post not found")
    return post


async def get_user(db: AsyncSession, user_id: int) -> User:
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def count_likes(db: AsyncSession, post_id: int) -> int:
    return await db.scalar(
        select(func.count(Like.id)).where(Like.post_id == post_id)
    ) or 0


async def create_post(db: AsyncSession, author: User, content: str) -> PostItem:
    post = Post(author_id=author.id, content=content)
    db.add(post)
    await db.commit()
    await db.refresh(post)
    return PostItem(
        id=post.id,
        content=post.content,
        created_at=post.created_at,
        author=AuthorSummary(id=author.id, username=author.username),
    )


async def list_posts(
    db: AsyncSession,
    offset: int,
    limit: int,
    username: Optional[str] = None,
    current_user_id: Optional[int] = None,
) -> Tuple[List[PostItem], int]:
    """Newest posts first, with counts derived from live Like/Comment rows."""
    like_count = (
        select(func.count(Like.id))
        .where(Like.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )
    comment_count = (
        select(func.count(Comment.id))
        .where(Comment.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )
    if current_user_id is not None:
        liked_by_me = exists().where(
            Like.post_id == Post.id, Like.user_id == current_user_id
        ).correlate(Post)
    else:
        liked_by_me = false()

    filters = []
    if username:
        filters.append(User.username.ilike(f"%{username}%"))

    total = await db.scalar(
        select(func.count(Post.id))
        .join(User, User.id == Post.author_id)
        .where(*filters)
    ) or 0

    stmt = (
        select(
            Post,
            User.username,
            like_count.label("like_count"),
            comment_count.label("comment_count"),
            liked_by_me.label("is_liked_by_me"),
        )
        .join(User, User.id == Post.author_id)
        .where(*filters)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()

    items = [
        PostItem(
            id=post.id,
            content=post.content,
            created_at=post.created_at,
            author=AuthorSummary(id=post.author_id, username=author_username),
            like_count=likes or 0,
            comment_count=comments or 0,
            is_liked_by_me=bool(liked),
        )
        for post, author_username, likes, comments, liked in rows
    ]
    return items, total
