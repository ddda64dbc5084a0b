"""Async event bus with per-topic subscriber lists."""

import asyncio
from typing import AsyncIterator, Awaitable, Callable

from loguru import logger

from majordomo.bus.events import Event

Subscriber = Callable[[Event], Awaitable[None]]

ALL_TOPICS = "*"


class EventBus:
    """
    Decouples the orchestrator from whoever is listening.

    Publishers push onto a single queue and a dispatcher delivers events
    in publish order, so each topic is FIFO. A failing subscriber is logged
    and does not stop delivery to the others.
    """

    def __init__(self):
        self.queue: asyncio.Queue[Event] = asyncio.Queue()
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._running = False

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Subscribe to a topic (``"*"`` for all). Returns an unsubscribe callable."""
        self._subscribers.setdefault(topic, []).append(callback)

        def unsubscribe() -> None:
            subscribers = self._subscribers.get(topic, [])
            if callback in subscribers:
                subscribers.remove(callback)

        return unsubscribe

    async def publish(self, event: Event) -> None:
        await self.queue.put(event)

    def publish_nowait(self, event: Event) -> None:
        self.queue.put_nowait(event)

    async def _deliver(self, event: Event) -> None:
        subscribers = self._subscribers.get(event.topic, []) + self._subscribers.get(ALL_TOPICS, [])
        for callback in subscribers:
            try:
                await callback(event)
            except Exception as e:
                logger.error(f"Bus: subscriber failed on {event.topic}: {e}")

    async def dispatch(self) -> None:
        """
        Deliver events to subscribers until stopped.
        Run this as a background task.
        """
        self._running = True
        while self._running:
            try:
                event = await asyncio.wait_for(self.queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            await self._deliver(event)

    async def drain(self) -> int:
        """Deliver everything pending right now and return how many were delivered."""
        delivered = 0
        while not self.queue.empty():
            await self._deliver(self.queue.get_nowait())
            delivered += 1
        return delivered

    async def events(self, topic: str = ALL_TOPICS) -> AsyncIterator[Event]:
        """Iterate over delivered events of a topic. Requires a running dispatcher."""
        inbox: asyncio.Queue[Event] = asyncio.Queue()

        async def forward(event: Event) -> None:
            await inbox.put(event)

        unsubscribe = self.subscribe(topic, forward)
        try:
            while True:
                yield await inbox.get()
        finally:
            unsubscribe()

    def stop(self) -> None:
        """Stop the dispatcher loop."""
        self._running = False

    @property
    def size(self) -> int:
        """Number of pending events."""
        return self.queue.qsize()
