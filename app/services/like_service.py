"""
Like/unlike toggle.

At most one Like row may exist per (user, post). The unique constraint
`uq_post_like_user` enforces this in the database; the service translates a
constraint violation on insert into the already-liked state, since a racing
request from the same user has then done exactly what this one wanted.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import DuplicateLikeError
from ..models import Like
from ..schemas import LikeToggleData
from .notification_service import PushPayload, build_like_notification
from .post_service import count_likes, get_post, get_user

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def schedule(self, user_id: int, payload: PushPayload) -> None:
        ...


async def _find_like(db: AsyncSession, post_id: int, user_id: int) -> Optional[Like]:
    res = await db.execute(
        select(Like).where(Like.post_id == post_id, Like.user_id == user_id)
    )
    return res.scalars().first()


async def _insert_like(db: AsyncSession, post_id: int, user_id: int) -> None:
    db.add(Like(user_id=user_id, post_id=post_id))
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateLikeError(user_id, post_id) from e


async def toggle_like(
    db: AsyncSession,
    post_id: int,
    user_id: int,
    scheduler: Optional[Scheduler] = None,
) -> LikeToggleData:
    """Flip the like state of `user_id` on `post_id` and return the new state.

    Raises NotFoundError when the post or the user does not exist. A like by
    anyone but the author schedules a push to the author; the push never
    affects the result.
    """
    post = await get_post(db, post_id)
    user = await get_user(db, user_id)
    author_id = post.author_id
    username = user.username

    existing = await _find_like(db, post_id, user_id)
    if existing is not None:
        # Statement delete so a concurrent unlike of the same row is a no-op
        await db.execute(
            delete(Like).where(Like.post_id == post_id, Like.user_id == user_id)
        )
        await db.commit()
        return LikeToggleData(liked=False, like_count=await count_likes(db, post_id))

    try:
        await _insert_like(db, post_id, user_id)
    except DuplicateLikeError as e:
        logger.info(f"Concurrent like resolved as already liked: {e}")
        return LikeToggleData(liked=True, like_count=await count_likes(db, post_id))

    if author_id != user_id and scheduler is not None:
        scheduler.schedule(author_id, build_like_notification(username, post_id))

    return LikeToggleData(liked=True, like_count=await count_likes(db, post_id))


async def is_liked_by(db: AsyncSession, post_id: int, user_id: int) -> bool:
    return await _find_like(db, post_id, user_id) is not None
