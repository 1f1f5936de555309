"""Tests for the visited set and bounded channels."""

import asyncio
import threading

import pytest
from app.follow_crawler.core.exceptions import ChannelClosedError
from app.follow_crawler.frontier import BoundedChannel, VisitedSet


def test_admit_inserts_once():
    visited = VisitedSet()

    assert visited.admit("alice") is True
    assert visited.admit("alice") is False
    assert "alice" in visited
    assert "bob" not in visited
    assert len(visited) == 1
    assert visited.stats == {"admit_calls": 2, "admitted": 1, "rejected": 1}


def test_initial_members_are_rejected():
    visited = VisitedSet(["root"])

    assert visited.admit("root") is False
    assert visited.snapshot() == frozenset({"root"})


def test_concurrent_admit_has_single_winner():
    visited = VisitedSet()
    winners = []
    lock = threading.Lock()
    barrier = threading.Barrier(16)

    def contend():
        barrier.wait()
        for i in range(200):
            if visited.admit(f"user{i}"):
                with lock:
                    winners.append(i)

    threads = [threading.Thread(target=contend) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(winners) == list(range(200))
    assert len(visited) == 200


def test_channel_is_fifo():
    async def scenario():
        channel = BoundedChannel(3, name="test")
        for i in range(3):
            await channel.put(i)
        assert channel.full()
        return [await channel.get() for _ in range(3)]

    assert asyncio.run(scenario()) == [0, 1, 2]


def test_put_suspends_while_full():
    async def scenario():
        channel = BoundedChannel(1)
        await channel.put("first")

        pending = asyncio.create_task(channel.put("second"))
        await asyncio.sleep(0.01)
        assert not pending.done()

        assert await channel.get() == "first"
        await asyncio.wait_for(pending, timeout=1)
        return await channel.get(), channel.get_stats()

    item, stats = asyncio.run(scenario())
    assert item == "second"
    assert stats["send_waits"] == 1
    assert stats["peak_depth"] == 1


def test_zero_capacity_is_unbounded():
    async def scenario():
        channel = BoundedChannel(0)
        for i in range(1000):
            await channel.put(i)
        return channel.qsize(), channel.full()

    assert asyncio.run(scenario()) == (1000, False)


def test_close_drains_then_stops_iteration():
    async def scenario():
        channel = BoundedChannel(5)
        await channel.put("a")
        await channel.put("b")
        await channel.close()
        return [item async for item in channel]

    assert asyncio.run(scenario()) == ["a", "b"]


def test_close_wakes_waiting_receiver():
    async def scenario():
        channel = BoundedChannel(1)
        receiver = asyncio.create_task(channel.get())
        await asyncio.sleep(0.01)
        await channel.close()
        with pytest.raises(ChannelClosedError):
            await receiver

    asyncio.run(scenario())


def test_close_fails_pending_sender():
    async def scenario():
        channel = BoundedChannel(1)
        await channel.put("held")
        sender = asyncio.create_task(channel.put("blocked"))
        await asyncio.sleep(0.01)
        await channel.close()
        with pytest.raises(ChannelClosedError):
            await sender
        # The buffered item is still delivered
        return await channel.get()

    assert asyncio.run(scenario()) == "held"


def test_send_after_close_and_double_close_raise():
    async def scenario():
        channel = BoundedChannel(2, name="results")
        await channel.close()
        with pytest.raises(ChannelClosedError):
            await channel.put("late")
        with pytest.raises(ChannelClosedError) as exc_info:
            await channel.close()
        assert exc_info.value.channel_name == "results"
        assert channel.closed

    asyncio.run(scenario())
