from sqlalchemy import select

from app.models import DeviceToken
from app.services.notification_service import NotificationDispatcher
from conftest import FakePushTransport, register_token, signup_user


async def test_register_token(client, test_session):
    alice = await signup_user(client, "alice")

    response = await client.post(
        "/api/notifications/register-token", json={"token": "fcm-123"}, headers=alice["headers"])

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "FCM token registered successfully"
    assert body["data"]["token"] == "fcm-123"
    assert "updatedAt" in body["data"]

    rows = (await test_session.execute(select(DeviceToken))).scalars().all()
    assert [(r.user_id, r.token) for r in rows] == [(alice["id"], "fcm-123")]


async def test_register_same_token_twice_is_upsert(client, test_session):
    alice = await signup_user(client, "alice")

    first = await client.post(
        "/api/notifications/register-token", json={"token": "fcm-123"}, headers=alice["headers"])
    second = await client.post(
        "/api/notifications/register-token", json={"token": "fcm-123"}, headers=alice["headers"])

    assert first.json()["data"]["id"] == second.json()["data"]["id"]
    rows = (await test_session.execute(select(DeviceToken))).scalars().all()
    assert len(rows) == 1


async def test_register_empty_token_rejected(client):
    alice = await signup_user(client, "alice")
    response = await client.post(
        "/api/notifications/register-token", json={"token": ""}, headers=alice["headers"])
    assert response.status_code == 422


async def test_dispatch_prunes_unregistered_token(client, test_session):
    alice = await signup_user(client, "alice")
    bob = await signup_user(client, "bob")
    for token in ["phone", "tablet", "old-phone"]:
        await register_token(client, alice, token)
    await register_token(client, bob, "bob-phone")

    transport = FakePushTransport(invalid_tokens={"old-phone"})
    dispatcher = NotificationDispatcher(transport)

    delivered = await dispatcher.send_to_user(
        test_session, alice["id"], "New Like", "bob liked your post", {"type": "like"})

    assert delivered is True
    assert transport.calls[0]["tokens"] == ["phone", "tablet", "old-phone"]
    remaining = (await test_session.execute(
        select(DeviceToken.token).order_by(DeviceToken.id))).scalars().all()
    assert remaining == ["phone", "tablet", "bob-phone"]


async def test_dispatch_without_tokens_skips_transport(client, test_session):
    alice = await signup_user(client, "alice")
    transport = FakePushTransport()

    delivered = await NotificationDispatcher(transport).send_to_user(
        test_session, alice["id"], "New Like", "bob liked your post")

    assert delivered is False
    assert transport.calls == []


async def test_dispatch_without_transport_is_noop(client, test_session):
    alice = await signup_user(client, "alice")
    await register_token(client, alice, "phone")

    delivered = await NotificationDispatcher(None).send_to_user(
        test_session, alice["id"], "New Like", "bob liked your post")

    assert delivered is False


async def test_dispatch_all_failed_keeps_tokens(client, test_session):
    alice = await signup_user(client, "alice")
    await register_token(client, alice, "phone")
    transport = FakePushTransport(failing_tokens={"phone"})

    delivered = await NotificationDispatcher(transport).send_to_user(
        test_session, alice["id"], "New Like", "bob liked your post")

    assert delivered is False
    remaining = (await test_session.execute(select(DeviceToken.token))).scalars().all()
    assert remaining == ["phone"]
