"""
Push notifications for social actions.

Delivery is best effort: nothing in this module raises into the request that
triggered a notification. The dispatcher absorbs transport failures and prunes
device tokens the provider reports as dead; the scheduler runs deliveries after
the response has been sent and only ever reports failures to the log.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional

from fastapi import BackgroundTasks, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import AsyncSessionLocal
from ..exceptions import TransportFailure
from .device_token_service import delete_tokens, list_tokens
from .push_transport import PushFailure, PushTransport, build_push_transport

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 50


@dataclass(frozen=True)
class PushPayload:
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)


def comment_preview(content: str) -> str:
    if len(content) > COMMENT_PREVIEW_LENGTH:
        return content[:COMMENT_PREVIEW_LENGTH] + "..."
    return content


def build_like_notification(actor_username: str, post_id: int) -> PushPayload:
    return PushPayload(
        title="New Like",
        body=f"{actor_username} liked your post",
        data={
            "type": "like",
            "postId": str(post_id),
            "actorUsername": actor_username,
        },
    )


def build_comment_notification(actor_username: str, content: str, post_id: int) -> PushPayload:
    return PushPayload(
        title="New Comment",
        body=f'{actor_username} commented: "{comment_preview(content)}"',
        data={
            "type": "comment",
            "postId": str(post_id),
            "actorUsername": actor_username,
        },
    )


class NotificationDispatcher:
    """Sends one multicast push to every registered device of a user."""

    def __init__(self, transport: Optional[PushTransport]):
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return self.transport is not None

    async def send_to_user(
        self,
        db: AsyncSession,
        user_id: int,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> bool:
        """Return True iff at least one device accepted the message."""
        if self.transport is None:
            logger.warning(
                "Push transport not configured. Skipping push notification.")
            return False

        tokens = await list_tokens(db, user_id)
        if not tokens:
            logger.info(f"No device tokens found for user {user_id}")
            return False

        try:
            results = await self.transport.send_multicast(tokens, title, body, data or {})
        except TransportFailure as e:
            logger.error(f"Error sending push notification to user {user_id}: {e}")
            return False

        success_count = sum(1 for r in results if r.success)
        logger.info(
            f"Push notification sent to user {user_id}: "
            f"{success_count} success, {len(results) - success_count} failed")

        invalid_tokens = []
        for r in results:
            if r.success:
                continue
            if r.failure == PushFailure.INVALID_TOKEN:
                invalid_tokens.append(r.token)
            else:
                logger.warning(
                    f"Push delivery failed for user {user_id}: {r.detail}")

        if invalid_tokens:
            try:
                removed = await delete_tokens(db, invalid_tokens)
                logger.info(f"Cleaned up {removed} invalid device tokens")
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to clean up invalid device tokens: {e}")

        return success_count > 0

    async def send(self, db: AsyncSession, user_id: int, payload: PushPayload) -> bool:
        return await self.send_to_user(db, user_id, payload.title, payload.body, payload.data)


class NotificationScheduler:
    """Queues pushes to run after the HTTP response has gone out."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        background_tasks: BackgroundTasks,
        session_factory: async_sessionmaker = AsyncSessionLocal,
    ):
        self.dispatcher = dispatcher
        self.background_tasks = background_tasks
        self.session_factory = session_factory

    def schedule(self, user_id: int, payload: PushPayload) -> None:
        self.background_tasks.add_task(self.deliver, user_id, payload)

    async def deliver(self, user_id: int, payload: PushPayload) -> bool:
        kind = payload.data.get("type", "push")
        try:
            async with self.session_factory() as db:
                delivered = await self.dispatcher.send(db, user_id, payload)
        except Exception:
            logger.exception(f"Failed to send {kind} notification to user {user_id}")
            return False
        logger.info(f"{kind} notification to user {user_id} delivered={delivered}")
        return delivered


@lru_cache
def get_notification_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(build_push_transport())


def get_notification_scheduler(
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> NotificationScheduler:
    return NotificationScheduler(dispatcher, background_tasks)
