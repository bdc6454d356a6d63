"""Best-effort background tasks detached from the request/response cycle."""
import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """
    Runs fire-and-forget coroutines.

    Holds a strong reference to every running task (the event loop only keeps
    weak ones), logs failures instead of propagating them, and lets shutdown
    code and tests wait for outstanding work with drain().
    """

    def __init__(self, name: str = "background"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Schedule a coroutine; its failure never reaches the caller."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"[{self.name}] Task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.error(
                f"[{self.name}] Task {task.get_name()} failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for all outstanding tasks; cancel whatever is left after timeout."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.debug(f"[{self.name}] Draining {len(tasks)} task(s)")
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"[{self.name}] Cancelled {len(pending)} task(s) still running at drain")
            await asyncio.gather(*pending, return_exceptions=True)
