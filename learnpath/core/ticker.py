"""Periodic tick sources for recurring work.

A ticker is an async iterable yielding once per period. Production code uses
IntervalTicker; tests drive ManualTicker to advance virtual time.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Protocol


class Ticker(Protocol):
    """Async iterable yielding the tick number once per period."""

    def __aiter__(self) -> AsyncIterator[int]: ...


class IntervalTicker:
    """Ticks every ``interval`` seconds of real time."""

    def __init__(self, interval: float) -> None:
        if interval <= 0:
            msg = "Ticker interval must be positive"
            raise ValueError(msg)
        self.interval = interval

    async def __aiter__(self) -> AsyncIterator[int]:
        count = 0
        while True:
            await asyncio.sleep(self.interval)
            count += 1
            yield count


class ManualTicker:
    """Ticks only when ``tick()`` is awaited.

    ``await ticker.tick()`` returns once the consumer has finished handling
    that tick and asked for the next one, so tests observe its effects
    deterministically.
    """

    def __init__(self) -> None:
        self._ticks: asyncio.Queue[int] = asyncio.Queue()
        self._handled = asyncio.Event()
        self._count = 0

    async def tick(self, times: int = 1) -> None:
        for _ in range(times):
            self._handled.clear()
            self._count += 1
            await self._ticks.put(self._count)
            await self._handled.wait()

    @property
    def count(self) -> int:
        return self._count

    def __aiter__(self) -> AsyncIterator[int]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[int]:
        while True:
            yield await self._ticks.get()
            self._handled.set()
