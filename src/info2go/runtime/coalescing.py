"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/coalescing.py.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class RequestCoalescer(Generic[T]):
    """
    Deduplicate identical in-flight requests (keyed single-flight).

    The first caller for a key starts the work; later callers for the same
    key join the running task and receive its result. The key is released
    as soon as the task settles, so the next call starts fresh work.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda done, k=key: self._release(k, done))
        # A cancelled waiter must not cancel work other callers joined.
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def is_in_flight(self, key: str) -> bool:
        return key in self._tasks

    def in_flight(self) -> list[str]:
        """Keys with running work, in start order."""
        return list(self._tasks)

    async def drain(self) -> None:
        """Wait for every running task to settle."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
