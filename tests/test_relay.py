import asyncio
import logging

import pytest

import constants
from exceptions import UnknownChannelError, UnknownEventError
from relay import RelayServer
from settings import RelaySettings

THREAD = constants.THREAD_NAMESPACE
INBOX = constants.INBOX_NAMESPACE
NOTIFICATIONS = constants.NOTIFICATIONS_NAMESPACE


@pytest.mark.asyncio
async def test_thread_scenario_notifies_both_members(relay, make_connection, secret):
    a, b = make_connection(), make_connection()
    relay.connect(a)
    relay.connect(b)

    await relay.dispatch(a, THREAD, "thread", ["T1", secret])
    await relay.dispatch(b, THREAD, "thread", ["T1", secret])
    await relay.dispatch(a, THREAD, "new private message", ["T1", secret])

    assert a.websocket.events(THREAD) == [("new private message", [])]
    assert b.websocket.events(THREAD) == [("new private message", [])]


@pytest.mark.asyncio
async def test_wrong_secret_join_then_update_reaches_no_one(relay, make_connection, secret):
    a = make_connection()
    relay.connect(a)

    await relay.dispatch(a, INBOX, "user", ["u42", "wrong"])
    await relay.dispatch(a, INBOX, "update pm inbox", ["u42", secret])

    assert relay.channels[INBOX].registry.room_count == 0
    assert a.websocket.sent == []


@pytest.mark.asyncio
async def test_disconnect_clears_memberships_in_every_channel(relay, make_connection, secret):
    a = make_connection()
    relay.connect(a)
    await relay.dispatch(a, THREAD, "thread", ["T1", secret])
    await relay.dispatch(a, INBOX, "user", ["u42", secret])
    await relay.dispatch(a, NOTIFICATIONS, "user", ["u42", secret])

    relay.disconnect(a)

    assert a.closed
    assert a not in relay.connections
    for namespace in (THREAD, INBOX, NOTIFICATIONS):
        assert relay.channels[namespace].registry.rooms_for(a) == []
    assert await relay.publish(INBOX, "update pm inbox", "u42", secret) == 0
    assert a.websocket.sent == []


@pytest.mark.asyncio
async def test_events_from_closed_connection_are_ignored(relay, make_connection, secret):
    a = make_connection()
    relay.connect(a)
    relay.disconnect(a)

    assert await relay.dispatch(a, THREAD, "thread", ["T1", secret]) is False
    assert relay.channels[THREAD].registry.room_count == 0


@pytest.mark.asyncio
async def test_same_key_in_different_channels_is_isolated(relay, make_connection, secret):
    inbox_user, counter_user = make_connection(), make_connection()
    await relay.dispatch(inbox_user, INBOX, "user", ["u42", secret])
    await relay.dispatch(counter_user, NOTIFICATIONS, "user", ["u42", secret])

    await relay.dispatch(inbox_user, INBOX, "update pm inbox", ["u42", secret])

    assert inbox_user.websocket.events() == [("update pm inbox", [])]
    assert counter_user.websocket.sent == []


@pytest.mark.asyncio
async def test_connect_event_attaches_and_acknowledges(relay, make_connection):
    a = make_connection()
    assert await relay.dispatch(a, constants.STATUS_NAMESPACE, constants.CONNECT_EVENT, []) is True
    assert a in relay.channels[constants.STATUS_NAMESPACE].listeners
    assert a.websocket.events() == [(constants.CONNECT_EVENT, [])]


@pytest.mark.asyncio
async def test_namespace_disconnect_only_leaves_that_channel(relay, make_connection, secret):
    a = make_connection()
    await relay.dispatch(a, THREAD, "thread", ["T1", secret])
    await relay.dispatch(a, INBOX, "user", ["u42", secret])

    await relay.dispatch(a, THREAD, constants.DISCONNECT_EVENT, [])

    assert relay.channels[THREAD].registry.rooms_for(a) == []
    assert relay.channels[INBOX].registry.rooms_for(a) == ["u42"]


@pytest.mark.asyncio
async def test_unknown_namespace_is_dropped(relay, make_connection, secret):
    a = make_connection()
    assert await relay.dispatch(a, "/chat", "thread", ["T1", secret]) is False


@pytest.mark.asyncio
async def test_publish_routing_errors(relay, secret):
    with pytest.raises(UnknownChannelError):
        await relay.publish("/chat", "new private message", "T1", secret)
    with pytest.raises(UnknownChannelError):
        await relay.publish(constants.STATUS_NAMESPACE, constants.CHECK_SECRET_EVENT, "T1", secret)
    with pytest.raises(UnknownEventError):
        await relay.publish(THREAD, "update pm inbox", "T1", secret)


def test_stats_counts_rooms_per_channel(make_connection):
    relay = RelayServer(RelaySettings(service_key="k"))
    a = make_connection()
    relay.channels[THREAD].registry.join("T1", a)
    relay.channels[THREAD].registry.join("T2", a)

    stats = relay.stats()

    assert stats[THREAD] == {"listeners": 0, "rooms": 2, "memberships": 2}
    assert stats[constants.STATUS_NAMESPACE]["rooms"] == 0


@pytest.mark.asyncio
async def test_disconnect_during_fan_out_stops_delivery(relay, make_connection):
    registry = relay.channels[THREAD].registry
    leaving, staying = make_connection(), make_connection()
    relay.connect(leaving)
    relay.connect(staying)
    registry.join("T1", leaving)
    registry.join("T1", staying)

    # An earlier write is still holding the socket
    await leaving._send_lock.acquire()
    fan_out = asyncio.create_task(registry.broadcast("T1", "new private message"))
    while not staying.websocket.sent:
        await asyncio.sleep(0)
    await asyncio.sleep(0)

    relay.disconnect(leaving)
    leaving._send_lock.release()

    assert await fan_out == 2
    assert leaving.websocket.sent == []
    assert staying.websocket.events() == [("new private message", [])]


@pytest.mark.asyncio
async def test_disconnect_logs_each_attached_namespace(relay, make_connection, secret, caplog):
    a = make_connection()
    relay.connect(a)
    await relay.dispatch(a, THREAD, "thread", ["T1", secret])
    await relay.dispatch(a, INBOX, "user", ["u42", secret])

    with caplog.at_level(logging.INFO, logger="channels"):
        relay.disconnect(a)

    assert f"{a} disconnected from {THREAD} namespace" in caplog.text
    assert f"{a} disconnected from {INBOX} namespace" in caplog.text
    assert f"disconnected from {NOTIFICATIONS} namespace" not in caplog.text
