"""
Fire-and-forget task tracking.

Relays, catalog synchronisation and completion callbacks run as `asyncio`
tasks that nobody awaits. The runner keeps a reference to each task until
it finishes (the event loop only keeps weak references) and lets the
application wait for outstanding work on shutdown.
"""

import asyncio
from typing import Coroutine, Set


class BackgroundRunner:
    """Keeps fire-and-forget tasks alive until they are done."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Waits until every spawned task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
