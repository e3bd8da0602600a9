from __future__ import annotations

import asyncio
from typing import List, Optional

from ..errors import FrontierClosed
from ..models import Task


class Frontier:
    """
    Bounded multi-producer, multi-consumer queue of tasks that is closed
    exactly once. Consumers get None once it is closed and empty.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("frontier capacity must be >= 1")
        self.capacity = capacity
        self._queue: asyncio.Queue[Task] = asyncio.Queue(maxsize=capacity)
        self._closed = asyncio.Event()
        # Tasks taken off the queue by a getter whose consumer was cancelled
        # before it could hand them over.
        self._stranded: List[Task] = []

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        if self._closed.is_set():
            raise FrontierClosed("frontier is already closed")
        self._closed.set()

    async def put(self, task: Task) -> None:
        """Blocks while the frontier is full. Cancellation leaves it unchanged."""
        if self._closed.is_set():
            raise FrontierClosed(f"cannot push {task.url}: frontier is closed")
        await self._queue.put(task)

    async def get(self) -> Optional[Task]:
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._closed.is_set():
                return None

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            except BaseException:
                if getter.done() and not getter.cancelled():
                    self._stranded.append(getter.result())
                raise
            finally:
                closer.cancel()
                if not getter.done():
                    getter.cancel()

            if getter.done() and not getter.cancelled():
                return getter.result()

    def drain(self) -> List[Task]:
        """Remove and return everything left. Only valid once consumers stopped."""
        leftover, self._stranded = self._stranded, []
        while not self._queue.empty():
            leftover.append(self._queue.get_nowait())
        return leftover


class InFlightCounter:
    """Count of admitted tasks whose processing has not released them yet."""

    def __init__(self) -> None:
        self._value = 0
        self._total = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def value(self) -> int:
        return self._value

    @property
    def total(self) -> int:
        """Number of acquisitions over the counter's lifetime."""
        return self._total

    def acquire(self) -> None:
        self._value += 1
        self._total += 1
        self._idle.clear()

    def release(self) -> None:
        if self._value <= 0:
            raise RuntimeError("in-flight counter released below zero")
        self._value -= 1
        if self._value == 0:
            self._idle.set()

    async def wait_idle(self) -> None:
        while self._value:
            await self._idle.wait()
