"""Tests for tickers, periodic loops and the intent queue."""

import asyncio

import pytest

from majordomo.orchestrator.models import Intent
from majordomo.orchestrator.queue import IntentQueue
from majordomo.orchestrator.scheduler import IntervalTicker, ManualTicker, PeriodicLoop


@pytest.mark.asyncio
async def test_manual_ticker_drives_loop(clock):
    calls = []

    async def work():
        calls.append(clock.now())

    ticker = ManualTicker()
    loop = PeriodicLoop("work", ticker, work, clock=clock)
    loop.start()

    await ticker.tick()
    assert len(calls) == 1
    await ticker.tick(3)
    assert len(calls) == 4
    assert loop.health.tick_count == 4
    assert loop.health.last_tick == clock.now()
    assert loop.health.running

    await loop.stop()
    assert not loop.health.running


@pytest.mark.asyncio
async def test_loop_survives_errors(clock):
    attempts = 0

    async def flaky():
        nonlocal attempts
        attempts += 1
        if attempts % 2:
            raise ValueError(f"bad tick {attempts}")

    ticker = ManualTicker()
    loop = PeriodicLoop("flaky", ticker, flaky, clock=clock)
    loop.start()
    await ticker.tick(4)

    assert loop.health.tick_count == 4
    assert loop.health.error_count == 2
    assert loop.health.last_error == "bad tick 3"
    await loop.stop()


@pytest.mark.asyncio
async def test_shared_cancel_event_stops_loops(clock):
    cancel = asyncio.Event()
    tickers = [ManualTicker(), ManualTicker()]
    counts = [0, 0]

    def make(i):
        async def fn():
            counts[i] += 1
        return fn

    loops = [PeriodicLoop(f"l{i}", t, make(i), cancel, clock) for i, t in enumerate(tickers)]
    for loop in loops:
        loop.start()
    await tickers[0].tick()
    await tickers[1].tick(2)
    assert counts == [1, 2]

    cancel.set()
    for loop in loops:
        await loop.stop()
    assert all(not loop.health.running for loop in loops)


@pytest.mark.asyncio
async def test_run_once_reports_failure(clock):
    async def boom():
        raise RuntimeError("nope")

    loop = PeriodicLoop("once", ManualTicker(), boom, clock=clock)
    assert await loop.run_once() is False
    assert loop.health.error_count == 1


def test_interval_ticker_rejects_non_positive():
    with pytest.raises(ValueError):
        IntervalTicker(0)


# ============================================================================
# Intent queue
# ============================================================================


def _intent(clock, id: str, priority: int) -> Intent:
    return Intent(
        id=id,
        user_id="u1",
        tool_name="getTime",
        params={},
        source="user",
        priority=priority,
        created_at=clock.now(),
    )


def test_queue_orders_by_priority_then_arrival(clock):
    queue = IntentQueue()
    assert queue.push(_intent(clock, "a", 5)) == 0
    assert queue.push(_intent(clock, "b", 8)) == 0
    assert queue.push(_intent(clock, "c", 5)) == 2
    assert queue.push(_intent(clock, "d", 1)) == 3
    assert queue.push(_intent(clock, "e", 8)) == 1

    assert [i.id for i in queue.snapshot()] == ["b", "e", "a", "c", "d"]
    assert queue.peek().id == "b"
    assert "c" in queue
    assert queue.remove("c")
    assert not queue.remove("c")
    assert [queue.pop().id for _ in range(len(queue))] == ["b", "e", "a", "d"]
    assert queue.pop() is None
    assert queue.peek() is None
