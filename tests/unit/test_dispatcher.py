"""Unit tests for NotificationDispatcher and NotificationScheduler failure handling."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.exceptions import TransportFailure
from app.services.notification_service import (
    NotificationDispatcher,
    NotificationScheduler,
    build_like_notification,
)
from app.services.push_transport import PushFailure, PushResult

MODULE = "app.services.notification_service"


@pytest.mark.asyncio
async def test_transport_failure_returns_false():
    db = AsyncMock()
    transport = MagicMock()
    transport.send_multicast = AsyncMock(side_effect=TransportFailure("down"))

    with patch(f"{MODULE}.list_tokens", AsyncMock(return_value=["t1"])):
        delivered = await NotificationDispatcher(transport).send_to_user(db, 1, "t", "b")

    assert delivered is False


@pytest.mark.asyncio
async def test_cleanup_storage_error_is_absorbed():
    db = AsyncMock()
    transport = MagicMock()
    transport.send_multicast = AsyncMock(return_value=[
        PushResult(token="good", success=True),
        PushResult(token="dead", success=False, failure=PushFailure.INVALID_TOKEN),
    ])
    failing_delete = AsyncMock(side_effect=OperationalError("DELETE", {}, Exception("locked")))

    with patch(f"{MODULE}.list_tokens", AsyncMock(return_value=["good", "dead"])), \
            patch(f"{MODULE}.delete_tokens", failing_delete):
        delivered = await NotificationDispatcher(transport).send_to_user(db, 1, "t", "b")

    assert delivered is True
    failing_delete.assert_awaited_once_with(db, ["dead"])
    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_only_invalid_tokens_are_deleted():
    db = AsyncMock()
    transport = MagicMock()
    transport.send_multicast = AsyncMock(return_value=[
        PushResult(token="flaky", success=False, failure=PushFailure.TRANSPORT),
        PushResult(token="dead", success=False, failure=PushFailure.INVALID_TOKEN),
    ])
    delete = AsyncMock(return_value=1)

    with patch(f"{MODULE}.list_tokens", AsyncMock(return_value=["flaky", "dead"])), \
            patch(f"{MODULE}.delete_tokens", delete):
        delivered = await NotificationDispatcher(transport).send_to_user(db, 1, "t", "b")

    assert delivered is False
    delete.assert_awaited_once_with(db, ["dead"])


@pytest.mark.asyncio
async def test_scheduler_queues_background_delivery():
    dispatcher = MagicMock()
    background_tasks = MagicMock()
    scheduler = NotificationScheduler(dispatcher, background_tasks)
    payload = build_like_notification("bob", 3)

    scheduler.schedule(5, payload)

    background_tasks.add_task.assert_called_once_with(scheduler.deliver, 5, payload)
    dispatcher.send.assert_not_called()


@pytest.mark.asyncio
async def test_scheduler_delivery_swallows_errors():
    dispatcher = MagicMock()
    dispatcher.send = AsyncMock(side_effect=RuntimeError("boom"))
    session = AsyncMock()
    session_factory = MagicMock()
    session_factory.return_value.__aenter__ = AsyncMock(return_value=session)
    session_factory.return_value.__aexit__ = AsyncMock(return_value=False)
    scheduler = NotificationScheduler(dispatcher, MagicMock(), session_factory)

    delivered = await scheduler.deliver(5, build_like_notification("bob", 3))

    assert delivered is False
    dispatcher.send.assert_awaited_once()
