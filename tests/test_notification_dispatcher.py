"""
Ambient alerts: new messages, incoming requests and accepted requests.
"""

import pytest

from skillswap_core.realtime import ChangeEvent, ChangeType
from skillswap_core.services import connection_service, messaging_service
from skillswap_core.services.notification_service import (
    AlertKind,
    NotificationDispatcher,
    truncate_preview,
)


def test_truncate_preview():
    assert truncate_preview("short", 50) == "short"
    assert truncate_preview("x" * 50, 50) == "x" * 50
    assert truncate_preview("x" * 51, 50) == "x" * 50 + "..."
    assert truncate_preview("", 50) == ""


# ======================
# MESSAGES
# ======================

@pytest.mark.asyncio
async def test_inbound_message_raises_one_alert(db, bus, session_factory, accepted_connection, alice, bob):
    alerts = []
    async with NotificationDispatcher(bus, session_factory, alice.id, alerts.append):
        messaging_service.send_message(db, accepted_connection.id, bob.id, "Hi Alice!")
        messaging_service.send_message(db, accepted_connection.id, alice.id, "my own reply")
        await bus.drain()

    assert len(alerts) == 1
    assert alerts[0].kind is AlertKind.NEW_MESSAGE
    assert alerts[0].title == "New message from Bob Requester"
    assert alerts[0].description == "Hi Alice!"
    assert alerts[0].connection_id == accepted_connection.id


@pytest.mark.asyncio
async def test_long_message_preview_is_truncated(db, bus, session_factory, accepted_connection, alice, bob):
    alerts = []
    text = "a" * 80
    async with NotificationDispatcher(bus, session_factory, alice.id, alerts.append):
        messaging_service.send_message(db, accepted_connection.id, bob.id, text)
        await bus.drain()

    assert alerts[0].description == "a" * 50 + "..."


@pytest.mark.asyncio
async def test_redelivered_message_alerts_once(db, bus, session_factory, accepted_connection, alice, bob):
    alerts = []
    dispatcher = NotificationDispatcher(bus, session_factory, alice.id, alerts.append)
    await dispatcher.start()

    message = messaging_service.send_message(db, accepted_connection.id, bob.id, "ping")
    await bus.drain()
    duplicate = ChangeEvent(
        table="skill_chat_messages",
        type=ChangeType.INSERT,
        new={"id": message.id, "connection_id": accepted_connection.id, "sender_id": bob.id, "message": "ping"},
    )
    bus.publish(duplicate)
    bus.publish(duplicate)
    await bus.drain()
    await dispatcher.stop()

    assert len(alerts) == 1


@pytest.mark.asyncio
async def test_outsider_gets_no_message_alerts(db, bus, session_factory, accepted_connection, bob, carol):
    alerts = []
    async with NotificationDispatcher(bus, session_factory, carol.id, alerts.append):
        messaging_service.send_message(db, accepted_connection.id, bob.id, "not for carol")
        await bus.drain()

    assert alerts == []


@pytest.mark.asyncio
async def test_unknown_sender_is_someone(bus, session_factory, accepted_connection, alice):
    alerts = []
    async with NotificationDispatcher(bus, session_factory, alice.id, alerts.append):
        bus.publish(
            ChangeEvent(
                table="skill_chat_messages",
                type=ChangeType.INSERT,
                new={"id": 501, "connection_id": accepted_connection.id, "sender_id": 9999, "message": "boo"},
            )
        )
        await bus.drain()

    assert alerts[0].title == "New message from Someone"


@pytest.mark.asyncio
async def test_message_on_missing_connection_is_dropped(bus, session_factory, alice):
    alerts = []
    async with NotificationDispatcher(bus, session_factory, alice.id, alerts.append):
        bus.publish(
            ChangeEvent(
                table="skill_chat_messages",
                type=ChangeType.INSERT,
                new={"id": 502, "connection_id": 4242, "sender_id": 9999, "message": "ghost"},
            )
        )
        await bus.drain()

    assert alerts == []


# ======================
# CONNECTIONS
# ======================

@pytest.mark.asyncio
async def test_owner_is_told_about_new_request(db, bus, session_factory, offer_post, alice, bob):
    owner_alerts, requester_alerts = [], []
    async with NotificationDispatcher(bus, session_factory, alice.id, owner_alerts.append), \
            NotificationDispatcher(bus, session_factory, bob.id, requester_alerts.append):
        connection_service.request_connection(db, post_id=offer_post.id, requester_id=bob.id)
        await bus.drain()

    assert requester_alerts == []
    assert len(owner_alerts) == 1
    assert owner_alerts[0].kind is AlertKind.CONNECTION_REQUEST
    assert owner_alerts[0].title == "New connection request!"
    assert owner_alerts[0].description == 'Bob Requester wants to connect for "Python Basics"'


@pytest.mark.asyncio
async def test_request_on_missing_post_uses_placeholder(bus, session_factory, alice, bob):
    alerts = []
    async with NotificationDispatcher(bus, session_factory, alice.id, alerts.append):
        bus.publish(
            ChangeEvent(
                table="skill_connections",
                type=ChangeType.INSERT,
                new={"id": 77, "post_id": 9999, "requester_id": bob.id, "post_owner_id": alice.id, "status": "pending"},
            )
        )
        await bus.drain()

    assert alerts[0].description == 'Bob Requester wants to connect for "your post"'


@pytest.mark.asyncio
async def test_requester_is_told_when_accepted(db, bus, session_factory, offer_post, alice, bob):
    connection = connection_service.request_connection(db, post_id=offer_post.id, requester_id=bob.id)
    alerts = []
    async with NotificationDispatcher(bus, session_factory, bob.id, alerts.append):
        connection_service.respond(db, connection.id, "accepted", alice.id)
        await bus.drain()

    assert len(alerts) == 1
    assert alerts[0].kind is AlertKind.CONNECTION_ACCEPTED
    assert alerts[0].level == "success"
    assert alerts[0].description == "Alice Owner accepted your connection request. You can now chat!"


@pytest.mark.asyncio
async def test_decline_and_unrelated_updates_are_silent(db, bus, session_factory, offer_post, alice, bob):
    connection = connection_service.request_connection(db, post_id=offer_post.id, requester_id=bob.id)
    alerts = []
    async with NotificationDispatcher(bus, session_factory, bob.id, alerts.append):
        connection_service.respond(db, connection.id, "declined", alice.id)
        # accepted -> accepted carries no transition out of pending
        bus.publish(
            ChangeEvent(
                table="skill_connections",
                type=ChangeType.UPDATE,
                new={"id": connection.id, "requester_id": bob.id, "post_owner_id": alice.id, "status": "accepted"},
                old={"id": connection.id, "requester_id": bob.id, "post_owner_id": alice.id, "status": "accepted"},
            )
        )
        await bus.drain()

    assert alerts == []


# ======================
# LIFECYCLE & ISOLATION
# ======================

@pytest.mark.asyncio
async def test_failing_callback_does_not_break_dispatch(db, bus, session_factory, accepted_connection, alice, bob):
    delivered = []

    def flaky(alert):
        delivered.append(alert)
        if len(delivered) == 1:
            raise RuntimeError("toast renderer crashed")

    async with NotificationDispatcher(bus, session_factory, alice.id, flaky):
        messaging_service.send_message(db, accepted_connection.id, bob.id, "first")
        messaging_service.send_message(db, accepted_connection.id, bob.id, "second")
        await bus.drain()

    assert [a.description for a in delivered] == ["first", "second"]


@pytest.mark.asyncio
async def test_stop_releases_subscriptions(bus, session_factory, alice):
    dispatcher = NotificationDispatcher(bus, session_factory, alice.id, lambda alert: None)
    await dispatcher.start()
    await dispatcher.start()
    assert bus.subscription_count() == 3
    assert dispatcher.running

    await dispatcher.stop()
    assert bus.subscription_count() == 0
    assert not dispatcher.running
