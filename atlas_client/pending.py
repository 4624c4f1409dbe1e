"""
One in-flight login or refresh shared by every caller that asks for it while it runs.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class PendingOperation:
    """
    Runs factory() once as a task. Any number of callers may wait(); all get the same result or exception.
    A cancelled waiter does not cancel the task: the login/refresh runs to completion for the others.
    """

    def __init__(self, kind: str, factory: Callable[[], Awaitable[Any]], key: Any = None):
        self.kind = kind
        self.key = key
        self.waiters = 0
        self._task = asyncio.ensure_future(factory())
        self._task.add_done_callback(self._retrieve)

    @staticmethod
    def _retrieve(task: asyncio.Task) -> None:
        # Mark the exception as retrieved even if every waiter walked away
        if not task.cancelled():
            task.exception()

    @property
    def done(self) -> bool:
        return self._task.done()

    def add_done_callback(self, fn: Callable[["PendingOperation"], None]) -> None:
        self._task.add_done_callback(lambda _t: fn(self))

    async def wait(self) -> Any:
        self.waiters += 1
        return await asyncio.shield(self._task)
