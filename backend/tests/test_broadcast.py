"""Tests for BroadcastChannel delivery semantics."""
import asyncio

import pytest

from lobby.presence.broadcast import BroadcastChannel, make_frame
from lobby.presence.schemas import LobbyEvent

from conftest import FakeTransport


class SlowTransport(FakeTransport):
    async def send_json(self, data):
        await asyncio.sleep(10)


def test_make_frame_omits_data_for_payloadless_events():
    assert make_frame(LobbyEvent.CHAT_HISTORY_CLEARED) == {"event": "chatHistoryCleared"}
    assert make_frame("userJoined", {"username": "A"}) == {
        "event": "userJoined",
        "data": {"username": "A"},
    }


@pytest.mark.asyncio
async def test_broadcast_reaches_every_connection():
    channel = BroadcastChannel()
    a, b = FakeTransport(), FakeTransport()
    channel.add("a", a)
    channel.add("b", b)

    delivered = await channel.broadcast(LobbyEvent.USER_JOINED, {"username": "A"})

    assert delivered == 2
    assert a.sent == b.sent == [{"event": "userJoined", "data": {"username": "A"}}]


@pytest.mark.asyncio
async def test_failed_recipient_does_not_block_others():
    channel = BroadcastChannel()
    good, bad = FakeTransport(), FakeTransport(fail=True)
    channel.add("good", good)
    channel.add("bad", bad)

    delivered = await channel.broadcast(LobbyEvent.CONTRACT_UPDATED)

    assert delivered == 1
    assert good.events() == ["contractUpdated"]
    assert "bad" not in channel
    assert channel.connection_count() == 1


@pytest.mark.asyncio
async def test_slow_recipient_times_out_and_is_dropped():
    channel = BroadcastChannel(send_timeout=0.05)
    fast, slow = FakeTransport(), SlowTransport()
    channel.add("fast", fast)
    channel.add("slow", slow)

    delivered = await channel.broadcast(LobbyEvent.CHAT_HISTORY_CLEARED)

    assert delivered == 1
    assert fast.events() == ["chatHistoryCleared"]
    assert "slow" not in channel


@pytest.mark.asyncio
async def test_sequential_broadcasts_are_fifo_per_recipient():
    channel = BroadcastChannel()
    transports = [FakeTransport() for _ in range(3)]
    for i, t in enumerate(transports):
        channel.add(f"c{i}", t)

    for i in range(10):
        await channel.broadcast(LobbyEvent.CHAT_MESSAGE, {"n": i})

    for t in transports:
        assert [f["data"]["n"] for f in t.sent] == list(range(10))


@pytest.mark.asyncio
async def test_send_to_unknown_connection_returns_false():
    channel = BroadcastChannel()
    assert await channel.send("missing", LobbyEvent.PLAYERS_LIST, []) is False


@pytest.mark.asyncio
async def test_send_failure_drops_connection():
    channel = BroadcastChannel()
    channel.add("bad", FakeTransport(fail=True))
    assert await channel.send("bad", LobbyEvent.PLAYERS_LIST, []) is False
    assert "bad" not in channel


@pytest.mark.asyncio
async def test_broadcast_with_no_connections():
    assert await BroadcastChannel().broadcast(LobbyEvent.PLAYERS_LIST, []) == 0


@pytest.mark.asyncio
async def test_dropped_connections_are_reported_once():
    channel = BroadcastChannel(send_timeout=0.05)
    good, bad, slow = FakeTransport(), FakeTransport(fail=True), SlowTransport()
    for cid, transport in (("good", good), ("bad", bad), ("slow", slow)):
        channel.add(cid, transport)

    await channel.broadcast(LobbyEvent.PLAYERS_LIST, [])

    dropped = channel.take_dropped()
    assert sorted(cid for cid, _ in dropped) == ["bad", "slow"]
    assert dict(dropped)["bad"] is bad
    assert channel.take_dropped() == []


@pytest.mark.asyncio
async def test_discard_is_not_reported_as_dropped():
    channel = BroadcastChannel()
    channel.add("a", FakeTransport())
    channel.discard("a")
    assert channel.take_dropped() == []


@pytest.mark.asyncio
async def test_close_tolerates_transports_without_close():
    channel = BroadcastChannel()
    transport = FakeTransport()

    await channel.close(transport)
    await channel.close(object())

    assert transport.closed
