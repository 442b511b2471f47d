from __future__ import annotations

import asyncio
import json

import pytest

from dm_chat.infrastructure.ws.manager import ConnectionRegistry, PushChannel
from tests.conftest import make_message


async def _drain(channel: PushChannel) -> list[dict]:
    frames = []
    while True:
        try:
            raw = await asyncio.wait_for(channel.next(), timeout=0.01)
        except asyncio.TimeoutError:
            return frames
        if raw is None:
            return frames
        frames.append(json.loads(raw))


async def _new_messages(channel: PushChannel) -> list[dict]:
    return [f["data"] for f in await _drain(channel) if f["type"] == "newMessage"]


@pytest.mark.asyncio
async def test_publish_reaches_every_channel_of_receiver_once():
    registry = ConnectionRegistry()
    c1, c2 = PushChannel(), PushChannel()
    await registry.register("u2", c1)
    await registry.register("u2", c2)
    msg = make_message(sender_id="u1", receiver_id="u2", content="hi")

    delivered = await registry.publish(msg)

    assert delivered == 2
    assert [m["_id"] for m in await _new_messages(c1)] == [str(msg.id)]
    assert [m["_id"] for m in await _new_messages(c2)] == [str(msg.id)]


@pytest.mark.asyncio
async def test_unregistered_channel_stops_receiving():
    registry = ConnectionRegistry()
    c1, c2 = PushChannel(), PushChannel()
    await registry.register("u2", c1)
    await registry.register("u2", c2)
    await registry.unregister("u2", c1)
    await _drain(c1)
    await _drain(c2)

    await registry.publish(make_message(receiver_id="u2"))

    assert await _new_messages(c1) == []
    assert len(await _new_messages(c2)) == 1


@pytest.mark.asyncio
async def test_unregister_unknown_channel_is_noop():
    registry = ConnectionRegistry()
    await registry.unregister("u2", PushChannel())
    assert registry.online_user_ids() == []


@pytest.mark.asyncio
async def test_publish_without_listeners_is_silent_and_not_queued():
    registry = ConnectionRegistry()

    assert await registry.publish(make_message(receiver_id="u2")) == 0

    late = PushChannel()
    await registry.register("u2", late)
    assert await _new_messages(late) == []


@pytest.mark.asyncio
async def test_publish_preserves_order_within_a_channel():
    registry = ConnectionRegistry()
    channel = PushChannel()
    await registry.register("u2", channel)
    msgs = [make_message(receiver_id="u2", content=str(i)) for i in range(5)]

    for msg in msgs:
        await registry.publish(msg)

    assert [m["content"] for m in await _new_messages(channel)] == ["0", "1", "2", "3", "4"]


@pytest.mark.asyncio
async def test_sender_sessions_not_echoed_by_default():
    registry = ConnectionRegistry()
    sender_tab = PushChannel()
    await registry.register("u1", sender_tab)

    await registry.publish(make_message(sender_id="u1", receiver_id="u2"))

    assert await _new_messages(sender_tab) == []


@pytest.mark.asyncio
async def test_echo_to_sender_delivers_once_per_channel():
    registry = ConnectionRegistry(echo_to_sender=True)
    receiver, sender_tab = PushChannel(), PushChannel()
    await registry.register("u2", receiver)
    await registry.register("u1", sender_tab)

    assert await registry.publish(make_message(sender_id="u1", receiver_id="u2")) == 2

    # Note-to-self: sender and receiver share the channel set.
    self_note = make_message(sender_id="u1", receiver_id="u1")
    await _drain(sender_tab)
    assert await registry.publish(self_note) == 1
    assert len(await _new_messages(sender_tab)) == 1


@pytest.mark.asyncio
async def test_full_channel_is_dropped_without_blocking_others():
    registry = ConnectionRegistry()
    slow, fast = PushChannel(maxsize=1), PushChannel(maxsize=10)
    await registry.register("u2", slow)
    await registry.register("u2", fast)
    # The presence broadcast already filled the slow channel's single slot.

    delivered = await registry.publish(make_message(receiver_id="u2"))

    assert delivered == 1
    assert slow.closed
    assert registry.channel_count("u2") == 1
    assert len(await _new_messages(fast)) == 1


@pytest.mark.asyncio
async def test_presence_tracks_first_and_last_channel():
    registry = ConnectionRegistry()
    watcher = PushChannel()
    await registry.register("u1", watcher)
    c1, c2 = PushChannel(), PushChannel()

    await registry.register("u2", c1)
    await registry.register("u2", c2)
    assert registry.is_online("u2")
    await registry.unregister("u2", c1)
    assert registry.is_online("u2")
    await registry.unregister("u2", c2)
    assert not registry.is_online("u2")

    presence = [f["data"]["userIds"] for f in await _drain(watcher) if f["type"] == "getOnlineUsers"]
    assert presence == [["u1"], ["u1", "u2"], ["u1"]]


@pytest.mark.asyncio
async def test_channel_close_wakes_writer_and_rejects_offers():
    channel = PushChannel()
    assert channel.offer("a")

    channel.close()

    assert not channel.offer("b")
    assert await channel.next() is None
    assert await channel.next() is None


@pytest.mark.asyncio
async def test_close_all_closes_every_channel():
    registry = ConnectionRegistry()
    c1, c2 = PushChannel(), PushChannel()
    await registry.register("u1", c1)
    await registry.register("u2", c2)

    await registry.close_all()

    assert c1.closed and c2.closed
    assert registry.online_user_ids() == []
