"""Manage pool of active async tasks.

Used by the recorder to track deferred work (delayed transcript auto-send) so that every teardown path can cancel it.
"""

import asyncio
from typing import Any, Coroutine


class _TaskPool:
    """Manage pool of active async tasks."""

    def __init__(self) -> None:
        """Setup task container."""
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        """Number of active tasks."""
        return len(self._tasks)

    def create(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Create async task.

        The task removes itself from the pool once done.

        Returns:
            The created task.
        """
        task = asyncio.create_task(coro)
        task.add_done_callback(self._tasks.discard)

        self._tasks.add(task)
        return task

    async def cancel(self) -> None:
        """Cancel all active tasks in pool, other than the caller, and wait for them to unwind."""
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)

    async def wait(self) -> None:
        """Wait for all active tasks other than the caller to finish."""
        current = asyncio.current_task()
        await asyncio.gather(*(task for task in self._tasks if task is not current), return_exceptions=True)
