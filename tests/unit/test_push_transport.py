"""Unit tests for the Firebase push transport."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import exceptions as firebase_exceptions, messaging

from app.exceptions import TransportFailure
from app.services.push_transport import (
    FirebasePushTransport,
    PushFailure,
    classify_send_error,
)


def test_unregistered_token_is_invalid():
    exc = messaging.UnregisteredError("Requested entity was not found.")
    assert classify_send_error(exc) == PushFailure.INVALID_TOKEN


def test_malformed_registration_token_is_invalid():
    exc = firebase_exceptions.InvalidArgumentError(
        "The registration token is not a valid FCM registration token")
    assert classify_send_error(exc) == PushFailure.INVALID_TOKEN


def test_other_errors_are_transport_failures():
    exc = firebase_exceptions.UnavailableError("Service unavailable")
    assert classify_send_error(exc) == PushFailure.TRANSPORT
    assert classify_send_error(None) == PushFailure.TRANSPORT


def test_build_message_carries_platform_sound():
    message = FirebasePushTransport.build_message(
        ["t1", "t2"], "New Like", "bob liked your post", {"type": "like"})
    assert message.tokens == ["t1", "t2"]
    assert message.notification.title == "New Like"
    assert message.notification.body == "bob liked your post"
    assert message.data == {"type": "like"}
    assert message.android.notification.channel_id == "default"
    assert message.apns.payload.aps.sound == "default"


@pytest.mark.asyncio
async def test_send_multicast_maps_each_response():
    batch = SimpleNamespace(responses=[
        SimpleNamespace(success=True, exception=None),
        SimpleNamespace(success=False, exception=messaging.UnregisteredError("gone")),
        SimpleNamespace(success=False, exception=firebase_exceptions.InternalError("oops")),
    ])
    transport = FirebasePushTransport(app=MagicMock())

    with patch.object(messaging, "send_each_for_multicast", return_value=batch) as send:
        results = await transport.send_multicast(["a", "b", "c"], "t", "b", {})

    send.assert_called_once()
    assert [(r.token, r.success, r.failure) for r in results] == [
        ("a", True, None),
        ("b", False, PushFailure.INVALID_TOKEN),
        ("c", False, PushFailure.TRANSPORT),
    ]


@pytest.mark.asyncio
async def test_send_multicast_wraps_provider_errors():
    transport = FirebasePushTransport(app=MagicMock())
    error = firebase_exceptions.UnavailableError("FCM down")

    with patch.object(messaging, "send_each_for_multicast", side_effect=error):
        with pytest.raises(TransportFailure):
            await transport.send_multicast(["a"], "t", "b", {})
