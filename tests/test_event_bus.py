"""Tests for the async event bus."""

import asyncio

import pytest

from majordomo.bus import ALL_TOPICS, EventBus
from majordomo.bus.events import ActionRejectedEvent, HeartbeatEvent, StateChangedEvent


def _heartbeat(n: int) -> HeartbeatEvent:
    return HeartbeatEvent(state="running", queue_size=n, pending_confirmations=0)


@pytest.mark.asyncio
async def test_topic_delivery_is_fifo():
    bus = EventBus()
    seen: list[int] = []

    async def on_heartbeat(event):
        seen.append(event.queue_size)

    bus.subscribe("heartbeat", on_heartbeat)
    for i in range(5):
        await bus.publish(_heartbeat(i))
    bus.publish_nowait(StateChangedEvent(previous="running", current="paused"))

    assert bus.size == 6
    assert await bus.drain() == 6
    assert seen == [0, 1, 2, 3, 4]
    assert bus.size == 0


@pytest.mark.asyncio
async def test_wildcard_subscriber_sees_every_topic():
    bus = EventBus()
    topics: list[str] = []

    async def on_any(event):
        topics.append(event.topic)

    bus.subscribe(ALL_TOPICS, on_any)
    await bus.publish(_heartbeat(1))
    await bus.publish(ActionRejectedEvent(intent_id="i1", tool_name="playMusic", reason="no"))
    await bus.drain()

    assert topics == ["heartbeat", "actionRejected"]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    bus = EventBus()
    seen = []

    async def on_heartbeat(event):
        seen.append(event)

    unsubscribe = bus.subscribe("heartbeat", on_heartbeat)
    await bus.publish(_heartbeat(1))
    await bus.drain()
    unsubscribe()
    unsubscribe()
    await bus.publish(_heartbeat(2))
    await bus.drain()

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others():
    bus = EventBus()
    seen = []

    async def broken(event):
        raise RuntimeError("listener bug")

    async def healthy(event):
        seen.append(event.topic)

    bus.subscribe("heartbeat", broken)
    bus.subscribe("heartbeat", healthy)
    await bus.publish(_heartbeat(1))
    await bus.drain()

    assert seen == ["heartbeat"]


@pytest.mark.asyncio
async def test_dispatch_and_event_iterator():
    bus = EventBus()
    dispatcher = asyncio.create_task(bus.dispatch())
    stream = bus.events("stateChanged")
    first = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)

    await bus.publish(_heartbeat(1))
    await bus.publish(StateChangedEvent(previous="stopped", current="running"))
    event = await asyncio.wait_for(first, timeout=2)

    assert event.current == "running"
    await stream.aclose()
    bus.stop()
    await asyncio.wait_for(dispatcher, timeout=3)


def test_events_serialize_with_camel_case_aliases():
    event = ActionRejectedEvent(intent_id="i1", tool_name="sendEmail", reason="Not now")
    dumped = event.model_dump(by_alias=True)
    assert dumped["intentId"] == "i1"
    assert dumped["toolName"] == "sendEmail"
    assert dumped["topic"] == "actionRejected"
