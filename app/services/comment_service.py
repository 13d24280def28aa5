from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Comment, User
from ..schemas import AuthorSummary, CommentItem
from .like_service import Scheduler
from .notification_service import build_comment_notification
from .post_service import get_post, get_user


async def create_comment(
    db: AsyncSession,
    post_id: int,
    user_id: int,
    content: str,
    scheduler: Optional[Scheduler] = None,
) -> CommentItem:
    post = await get_post(db, post_id)
    user = await get_user(db, user_id)

    comment = Comment(user_id=user.id, post_id=post.id, content=content)
    db.add(comment)
    await db.commit()
    await db.refresh(comment)

    # Authors are not notified about their own comments
    if post.author_id != user.id and scheduler is not None:
        scheduler.schedule(
            post.author_id,
            build_comment_notification(user.username, content, post.id),
        )

    return CommentItem(
        id=comment.id,
        content=comment.content,
        created_at=comment.created_at,
        author=AuthorSummary(id=user.id, username=user.username),
    )


async def list_comments(
    db: AsyncSession, post_id: int, offset: int, limit: int
) -> Tuple[List[CommentItem], int]:
    await get_post(db, post_id)

    total = await db.scalar(
        select(func.count(Comment.id)).where(Comment.post_id == post_id)
    ) or 0

    rows = (await db.execute(
        select(Comment, User.username)
        .join(User, User.id == Comment.user_id)
        .where(Comment.post_id == post_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .offset(offset)
        .limit(limit)
    )).all()

    items = [
        CommentItem(
            id=comment.id,
            content=comment.content,
            created_at=comment.created_at,
            author=AuthorSummary(id=comment.user_id, username=username),
        )
        for comment, username in rows
    ]
    return items, total
