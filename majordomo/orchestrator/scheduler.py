"""Tickers and periodic loops.

Loops never sleep on their own: they wait on a ``Ticker``. Production code
uses ``IntervalTicker``; tests use ``ManualTicker`` and release ticks by hand.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from loguru import logger

from majordomo.utils.clock import Clock, SystemClock


class Ticker(ABC):
    @abstractmethod
    async def wait(self) -> None:
        """Block until the next tick is due."""

    def ack(self) -> None:
        """Called after each tick has been handled."""

    def close(self) -> None:
        """Release anyone waiting on this ticker."""


class IntervalTicker(Ticker):
    def __init__(self, interval_s: float):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.interval_s = interval_s

    async def wait(self) -> None:
        await asyncio.sleep(self.interval_s)


class ManualTicker(Ticker):
    """Ticks only when ``tick()`` is awaited; ``tick()`` returns once the loop handled it."""

    def __init__(self):
        self._requests: asyncio.Queue[asyncio.Future] = asyncio.Queue()
        self._current: asyncio.Future | None = None

    async def wait(self) -> None:
        self._current = await self._requests.get()

    def ack(self) -> None:
        if self._current is not None and not self._current.done():
            self._current.set_result(None)
        self._current = None

    async def tick(self, n: int = 1) -> None:
        for _ in range(n):
            done = asyncio.get_running_loop().create_future()
            await self._requests.put(done)
            await done

    def close(self) -> None:
        if self._current is not None and not self._current.done():
            self._current.cancel()
        while not self._requests.empty():
            self._requests.get_nowait().cancel()


@dataclass
class LoopHealth:
    running: bool = False
    last_tick: datetime | None = None
    tick_count: int = 0
    error_count: int = 0
    last_error: str | None = None


class PeriodicLoop:
    """
    Runs ``fn`` once per tick until cancelled.

    A tick only starts after the previous one finished, so a loop never
    overlaps itself. Exceptions are counted in ``health`` and logged; they
    never end the loop.
    """

    def __init__(
        self,
        name: str,
        ticker: Ticker,
        fn: Callable[[], Awaitable[None]],
        cancel: asyncio.Event | None = None,
        clock: Clock | None = None,
    ):
        self.name = name
        self.ticker = ticker
        self.fn = fn
        self.cancel = cancel or asyncio.Event()
        self.clock = clock or SystemClock()
        self.health = LoopHealth()
        self._task: asyncio.Task | None = None

    async def run_once(self) -> bool:
        """Run a single tick. Returns False if it raised."""
        ok = True
        try:
            await self.fn()
        except Exception as e:
            ok = False
            self.health.error_count += 1
            self.health.last_error = str(e)
            logger.error(f"Scheduler: {self.name} tick failed: {e}")
        self.health.tick_count += 1
        self.health.last_tick = self.clock.now()
        return ok

    async def run(self) -> None:
        self.health.running = True
        try:
            while not self.cancel.is_set():
                await self.ticker.wait()
                if self.cancel.is_set():
                    break
                try:
                    await self.run_once()
                finally:
                    self.ticker.ack()
        finally:
            self.health.running = False

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self.cancel.clear()
            self.health.running = True
            self._task = asyncio.create_task(self.run(), name=f"loop-{self.name}")
        return self._task

    async def stop(self) -> None:
        self.cancel.set()
        self.ticker.close()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.health.running = False
